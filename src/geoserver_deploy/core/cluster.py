"""Kubernetes cluster interaction utilities.

This module provides the Cluster class, a thin layer over the official
Kubernetes client for the handful of reads and mutations the release
helpers need: secrets, deployments, namespaces and ingresses.
"""

import time
from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

import click
import questionary
from icecream import ic
from kubernetes import client, config
from kubernetes.client.exceptions import ApiException
from kubernetes.config.config_exception import ConfigException
from urllib3.exceptions import MaxRetryError

from geoserver_deploy import console
from geoserver_deploy.exceptions import ClusterConnectionError, GeoServerDeployError, PatchError, RolloutTimeoutError
from geoserver_deploy.styles import POINTER, PROMPT_STYLE, QMARK

# Annotation kubectl uses for `rollout restart`
RESTARTED_AT_ANNOTATION = "kubectl.kubernetes.io/restartedAt"
_MERGE_PATCH = "application/merge-patch+json"
_POLL_INTERVAL = 2.0


def _is_not_found(err: ApiException) -> bool:
    return err.status == 404


@contextmanager
def _api_errors(action: str, error: type[GeoServerDeployError] = ClusterConnectionError) -> Generator[None, None, None]:
    """Translate client errors raised inside the block into labeled errors."""
    try:
        yield
    except ApiException as e:
        raise error(f"Failed to {action}: {e.status} {e.reason}") from e
    except MaxRetryError as e:
        raise ClusterConnectionError(f"Cannot connect to Kubernetes cluster: {e.reason}") from e


class Cluster:
    """Manages Kubernetes cluster interactions for one kubeconfig context.

    Attributes:
        context: The active Kubernetes context name.

    """

    def __init__(self, *, context: str | None = None, select_context: bool = False) -> None:
        """Initialize Cluster with context selection.

        Args:
            context: Explicit context name. Takes precedence over selection.
            select_context: If True, prompt user to select a context.
                           If False, use the current context.

        """
        self.context: str = context or self._set_context(select_context=select_context)
        try:
            config.load_kube_config(context=self.context)
        except ConfigException as e:
            raise ClusterConnectionError(f"Invalid or missing kubeconfig: {e}") from e

    @staticmethod
    def _set_context(*, select_context: bool) -> str:
        """Set the Kubernetes context to use.

        Args:
            select_context: If True, prompt user to select a context.

        Returns:
            The selected or current context name.

        Raises:
            ClusterConnectionError: If kubeconfig is invalid or missing.
            click.Abort: If user cancels context selection.

        """
        try:
            contexts, current_context = config.list_kube_config_contexts()
        except ConfigException as e:
            raise ClusterConnectionError(f"Invalid or missing kubeconfig: {e}") from e
        if select_context:
            context_names: list[str] = [context["name"] for context in contexts]
            context: str | None = questionary.select(
                "Select context to work with",
                choices=context_names,
                style=PROMPT_STYLE,
                pointer=POINTER,
                qmark=QMARK,
            ).ask()
            if context is None:
                console.warning("Context selection cancelled.")
                raise click.Abort()
        else:
            context = str(current_context["name"])
        console.action(f"Working with {console.highlight(context)} cluster")
        return context

    def check_connection(self) -> None:
        """Verify the API server answers.

        Raises:
            ClusterConnectionError: If the cluster is unreachable or rejects the request.

        """
        try:
            version = client.VersionApi().get_code()
        except MaxRetryError as e:
            raise ClusterConnectionError(f"Cannot connect to Kubernetes cluster: {e.reason}") from e
        except ApiException as e:
            raise ClusterConnectionError(
                f"Cannot connect to Kubernetes cluster: {e.status} {e.reason}. Please check your kubeconfig."
            ) from e
        ic(version.git_version)

    # Secrets

    @staticmethod
    def read_secret(name: str, namespace: str) -> dict[str, str] | None:
        """Read the data of a secret.

        Args:
            name: Secret name.
            namespace: Namespace to read from.

        Returns:
            The secret's base64-encoded data mapping (possibly empty),
            or None if the secret does not exist.

        Raises:
            ClusterConnectionError: If the cluster cannot be reached.

        """
        with _api_errors(f"read secret '{name}'"):
            try:
                secret = client.CoreV1Api().read_namespaced_secret(name, namespace)
            except ApiException as e:
                if _is_not_found(e):
                    return None
                raise
        return dict(secret.data or {})

    def secret_exists(self, name: str, namespace: str) -> bool:
        """Return True if the named secret exists in the namespace."""
        return self.read_secret(name, namespace) is not None

    @staticmethod
    def list_secret_names(namespace: str) -> list[str]:
        """List the names of all secrets in a namespace."""
        with _api_errors(f"list secrets in '{namespace}'"):
            items = client.CoreV1Api().list_namespaced_secret(namespace).items
        names = [secret.metadata.name for secret in items]
        ic(names)
        return names

    @staticmethod
    def patch_secret_data(name: str, namespace: str, data: dict[str, str]) -> None:
        """Merge-patch fields into a secret's data, leaving other fields untouched.

        Args:
            name: Secret name.
            namespace: Secret namespace.
            data: Base64-encoded values keyed by field name.

        Raises:
            PatchError: If the API server rejects the patch.
            ClusterConnectionError: If the cluster cannot be reached.

        """
        body: dict[str, Any] = {"data": data}
        with _api_errors(f"patch secret '{name}'", PatchError):
            client.CoreV1Api().patch_namespaced_secret(name, namespace, body, _content_type=_MERGE_PATCH)

    # Namespaces

    @staticmethod
    def ensure_namespace(namespace: str) -> bool:
        """Create the namespace if it does not exist.

        Returns:
            True if the namespace was created, False if it already existed.

        """
        api = client.CoreV1Api()
        with _api_errors(f"read namespace '{namespace}'"):
            try:
                api.read_namespace(namespace)
                return False
            except ApiException as e:
                if not _is_not_found(e):
                    raise
        with _api_errors(f"create namespace '{namespace}'", PatchError):
            api.create_namespace(client.V1Namespace(metadata=client.V1ObjectMeta(name=namespace)))
        return True

    # Workloads

    @staticmethod
    def deployment_exists(name: str, namespace: str) -> bool:
        """Return True if the named Deployment exists."""
        with _api_errors(f"read deployment '{name}'"):
            try:
                client.AppsV1Api().read_namespaced_deployment(name, namespace)
            except ApiException as e:
                if _is_not_found(e):
                    return False
                raise
        return True

    @staticmethod
    def job_exists(name: str, namespace: str) -> bool:
        """Return True if the named Job exists."""
        with _api_errors(f"read job '{name}'"):
            try:
                client.BatchV1Api().read_namespaced_job(name, namespace)
            except ApiException as e:
                if _is_not_found(e):
                    return False
                raise
        return True

    @staticmethod
    def restart_deployment(name: str, namespace: str) -> None:
        """Trigger a rolling restart by stamping the pod template, as `kubectl rollout restart` does.

        Raises:
            PatchError: If the API server rejects the patch.

        """
        stamp = datetime.now(timezone.utc).isoformat()
        body = {"spec": {"template": {"metadata": {"annotations": {RESTARTED_AT_ANNOTATION: stamp}}}}}
        ic(body)
        with _api_errors(f"restart deployment '{name}'", PatchError):
            client.AppsV1Api().patch_namespaced_deployment(name, namespace, body)

    @staticmethod
    def rollout_complete(deployment: Any) -> bool:
        """Decide whether a Deployment has finished rolling out.

        Mirrors the checks `kubectl rollout status` performs.

        Args:
            deployment: A V1Deployment as returned by the API.

        Returns:
            True when every desired replica is updated and available.

        """
        status = deployment.status
        desired = deployment.spec.replicas if deployment.spec.replicas is not None else 1
        if (deployment.metadata.generation or 0) > (status.observed_generation or 0):
            return False
        updated = status.updated_replicas or 0
        if updated < desired:
            return False
        if (status.replicas or 0) > updated:
            return False
        return (status.available_replicas or 0) >= updated

    def wait_for_rollout(self, name: str, namespace: str, *, timeout: int) -> None:
        """Block until the Deployment reports a completed rollout.

        Args:
            name: Deployment name.
            namespace: Deployment namespace.
            timeout: Seconds to wait before giving up.

        Raises:
            RolloutTimeoutError: If the rollout is not complete within ``timeout``.
            ClusterConnectionError: If the status cannot be read.

        """
        apps = client.AppsV1Api()
        deadline = time.monotonic() + timeout
        with console.spinner(f"Waiting for deployment {name} to be ready..."):
            while True:
                with _api_errors(f"read status of deployment '{name}'"):
                    deployment = apps.read_namespaced_deployment_status(name, namespace)
                if self.rollout_complete(deployment):
                    return
                if time.monotonic() >= deadline:
                    raise RolloutTimeoutError(
                        f"Deployment '{name}' in namespace '{namespace}' was not ready after {timeout}s"
                    )
                time.sleep(_POLL_INTERVAL)

    # Ingress

    @staticmethod
    def first_ingress_host(namespace: str) -> str | None:
        """Return the host of the first rule of the first ingress in the namespace."""
        try:
            items = client.NetworkingV1Api().list_namespaced_ingress(namespace).items
        except (ApiException, MaxRetryError) as e:
            ic(e)
            return None
        for ingress in items:
            for rule in ingress.spec.rules or []:
                if rule.host:
                    return str(rule.host)
        return None

    def __repr__(self) -> str:
        """Return a detailed string representation for debugging."""
        return f"Cluster(context={self.context!r})"
