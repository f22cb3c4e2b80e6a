"""GeoServer release facade.

This module provides the GeoServerRelease class which serves as the main
entry point for operations on one release in the cluster, coordinating
between rendering, the keystore helper and the credential helper.
"""

import contextlib
import subprocess
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any

from icecream import ic

from geoserver_deploy import console
from geoserver_deploy.chart.render import dump_manifests, find_document, render_release
from geoserver_deploy.chart.resources import keystore_job_name
from geoserver_deploy.core.cluster import Cluster
from geoserver_deploy.core.host import Host
from geoserver_deploy.exceptions import ApplyError
from geoserver_deploy.models import AdminCredentials, Environment, ReleaseTarget
from geoserver_deploy.secrets.credentials import fetch_admin_credentials
from geoserver_deploy.secrets.keystore import (
    RESTART_TIMEOUT,
    add_keystore_to_secret,
    detect_secret_name,
    restart_geoserver,
)

DEFAULT_NAMESPACE = "geoserver"
DEFAULT_RELEASE = "geoserver"
DEPLOY_TIMEOUT = 600

_PRODUCTION_CHECKLIST: tuple[str, ...] = (
    "Review the admin credentials (geoserver-deploy get-admin-password)",
    "Configure proper SSL certificates",
    "Set up database credentials",
)


class GeoServerRelease:
    """Operations on one GeoServer release.

    Attributes:
        target: Release name and namespace.
        cluster: Cluster instance for API operations.
        kubectl: Path to the kubectl binary used for applying manifests.

    """

    def __init__(
        self,
        release: str = DEFAULT_RELEASE,
        namespace: str = DEFAULT_NAMESPACE,
        *,
        context: str | None = None,
        select_context: bool = False,
    ) -> None:
        """Connect to the cluster holding the release.

        Args:
            release: Release name.
            namespace: Namespace of the release.
            context: Explicit kubeconfig context name.
            select_context: If True, prompt user to select a Kubernetes context.

        Raises:
            ClusterConnectionError: If the kubeconfig is unusable or the cluster is unreachable.

        """
        self.target = ReleaseTarget(release=release, namespace=namespace)
        self.cluster = Cluster(context=context, select_context=select_context)
        self.cluster.check_connection()
        self.kubectl: str | None = None

        # delete=False and close right away so kubectl can reopen it on Windows
        temp_file = NamedTemporaryFile(suffix=".yaml", delete=False)
        self._temp_file_path: Path = Path(temp_file.name)
        temp_file.close()

    def __enter__(self) -> "GeoServerRelease":
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self._cleanup_temp_file()

    def __repr__(self) -> str:
        """Return a detailed string representation for debugging."""
        return (
            f"GeoServerRelease(release={self.target.release!r}, namespace={self.target.namespace!r}, "
            f"context={self.cluster.context!r})"
        )

    def __del__(self) -> None:
        """Ensure temp file cleanup if context manager wasn't used."""
        self._cleanup_temp_file()

    def _cleanup_temp_file(self) -> None:
        if hasattr(self, "_temp_file_path"):
            with contextlib.suppress(OSError):
                self._temp_file_path.unlink(missing_ok=True)

    @property
    def release(self) -> str:
        return self.target.release

    @property
    def namespace(self) -> str:
        return self.target.namespace

    def _lookup(self, name: str) -> dict[str, str] | None:
        return self.cluster.read_secret(name, self.namespace)

    def render(self, values: dict[str, Any]) -> list[dict[str, Any]]:
        """Render the release, carrying forward secret values stored in the cluster.

        The keystore generator Job runs once per release. When it already
        exists it is left out, since its pod template cannot be updated.
        """
        documents = render_release(values, release=self.release, namespace=self.namespace, lookup=self._lookup)
        job_name = keystore_job_name(self.release)
        job = find_document(documents, "Job", job_name)
        if job is not None and self.cluster.job_exists(job_name, self.namespace):
            console.info(
                f"Keystore generator job {console.highlight(job_name)} already exists, skipping it. "
                "Delete the job to run it again."
            )
            documents = [doc for doc in documents if doc is not job]
        return documents

    def _apply_command(self, *, dry_run: bool) -> list[str]:
        if self.kubectl is None:
            self.kubectl = Host.which("kubectl")
        cmd = [
            self.kubectl,
            f"--context={self.cluster.context}",
            "apply",
            "-n",
            self.namespace,
            "-f",
            str(self._temp_file_path),
        ]
        if dry_run:
            cmd.append("--dry-run=client")
        return cmd

    def apply(self, documents: list[dict[str, Any]], *, dry_run: bool = False) -> list[str]:
        """Apply rendered objects with ``kubectl apply``.

        Args:
            documents: Rendered objects.
            dry_run: If True, let kubectl validate client-side without persisting.

        Returns:
            The lines kubectl printed, one per object.

        Raises:
            ToolNotFoundError: If kubectl is not installed.
            ApplyError: If kubectl rejects the manifests. Objects applied
                before the failure are left in place.

        """
        self._temp_file_path.write_text(dump_manifests(documents))
        cmd = self._apply_command(dry_run=dry_run)
        ic(cmd)
        try:
            with console.spinner("Applying manifests..."):
                result = subprocess.run(cmd, check=True, capture_output=True, text=True)
        except subprocess.CalledProcessError as err:
            stderr_msg = err.stderr.strip() if err.stderr else ""
            details = f" - {stderr_msg}" if stderr_msg else ""
            raise ApplyError(f"kubectl apply failed (exit code {err.returncode}){details}") from err
        lines = [line for line in result.stdout.splitlines() if line.strip()]
        for line in lines:
            console.step(line)
        return lines

    def deploy(
        self,
        environment: Environment,
        values: dict[str, Any],
        *,
        dry_run: bool = False,
        wait: bool = True,
        timeout: int = DEPLOY_TIMEOUT,
    ) -> list[dict[str, Any]]:
        """Install or upgrade the release.

        Args:
            environment: Environment profile the values were built for.
            values: The merged values tree.
            dry_run: If True, nothing is persisted in the cluster.
            wait: Wait for the Deployment rollout after applying.
            timeout: Seconds to wait for the rollout.

        Returns:
            The rendered objects.

        Raises:
            ApplyError: If applying fails.
            RolloutTimeoutError: If the rollout does not complete in time.

        """
        console.action(f"Deploying GeoServer with {console.highlight(environment.value)} configuration...")
        if environment is Environment.PROD:
            console.warning("Production deployment detected. Make sure to:")
            for number, item in enumerate(_PRODUCTION_CHECKLIST, start=1):
                console.warning(f"{number}. {item}")

        if dry_run:
            console.dry_run(f"Would create namespace '{self.namespace}' if it doesn't exist")
        elif self.cluster.ensure_namespace(self.namespace):
            console.success(f"Created namespace {console.highlight(self.namespace)}")

        documents = self.render(values)
        self.apply(documents, dry_run=dry_run)

        if dry_run:
            console.dry_run(f"Would wait up to {timeout}s for deployment '{self.release}'")
            return documents
        if wait:
            self.cluster.wait_for_rollout(self.release, self.namespace, timeout=timeout)

        console.success("GeoServer deployed successfully!")
        console.summary_panel(
            "GeoServer Release",
            {
                "Release": self.release,
                "Namespace": self.namespace,
                "Environment": environment.value,
                "Context": self.cluster.context,
                "Objects": str(len(documents)),
            },
        )
        self.show_access_info()
        return documents

    def show_access_info(self) -> None:
        """Print how to reach the release, via its ingress host or a port-forward."""
        console.info("Access Information:")
        host = self.cluster.first_ingress_host(self.namespace)
        if host:
            console.info(f"GeoServer URL: https://{host}/geoserver")
            console.info(f"Web Interface: https://{host}/geoserver/web")
            console.info(f"REST API: https://{host}/geoserver/rest")
        else:
            console.info("Use port-forward to access GeoServer:")
            console.command(f"kubectl port-forward -n {self.namespace} service/{self.release} 8080:8080")
            console.step("Then visit: http://localhost:8080/geoserver")
        console.newline()
        console.info(
            f"Admin credentials: geoserver-deploy get-admin-password -r {self.release} -n {self.namespace}"
        )

    def add_keystore(
        self,
        keystore_file: Path,
        *,
        secret_name: str | None = None,
        dry_run: bool = False,
        restart: bool = True,
        timeout: int = RESTART_TIMEOUT,
    ) -> str:
        """Place a keystore into the release's HTTPS secret and restart the server.

        Args:
            keystore_file: Local JKS keystore.
            secret_name: Secret to patch; detected from the release name when None.
            dry_run: If True, run every check but only describe the mutations.
            restart: Restart the Deployment after patching.
            timeout: Seconds to wait for the restart rollout.

        Returns:
            The name of the secret that was (or would be) patched.

        """
        if secret_name is None:
            console.action("Auto-detecting HTTPS secret name...")
            secret_name = detect_secret_name(self.cluster, self.namespace, self.release)
            console.success(f"Detected secret: {console.highlight(secret_name)}")

        add_keystore_to_secret(self.cluster, keystore_file, self.namespace, secret_name, dry_run=dry_run)
        if restart:
            restart_geoserver(self.cluster, self.namespace, self.release, dry_run=dry_run, timeout=timeout)

        console.newline()
        console.success("Process completed successfully!")
        console.info("Next steps:")
        console.step("Wait for GeoServer to start up completely")
        console.step(f"Check the logs: kubectl logs -f deployment/{self.release} -n {self.namespace}")
        console.step("Test HTTPS access to your GeoServer instance")
        console.step("Update your ingress configuration if needed")
        return secret_name

    def admin_credentials(self) -> AdminCredentials:
        """Read the decoded admin credentials of the release."""
        return fetch_admin_credentials(self.cluster, self.release, self.namespace)
