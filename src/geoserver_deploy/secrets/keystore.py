"""Keystore patch helper.

Places an externally produced JKS keystore into the HTTPS secret of a
release, verifies it landed, and restarts the server so it is picked up.
"""

import json
import shlex
from pathlib import Path

from icecream import ic

from geoserver_deploy import console
from geoserver_deploy.core.cluster import Cluster
from geoserver_deploy.exceptions import MissingFileError, SecretNotFoundError, VerificationError
from geoserver_deploy.secrets.policy import encode

KEYSTORE_KEY = "keystore.jks"
RESTART_TIMEOUT = 300

# Tried in order; earlier entries reflect the current naming convention
SECRET_NAME_PATTERNS: tuple[str, ...] = (
    "{release}-https",
    "{release}-geoserver-https",
    "geoserver-https",
    "{release}-https-keystore",
)
# Substrings that mark a secret as HTTPS-related in diagnostics
RELATED_SECRET_MARKERS: tuple[str, ...] = ("https", "keystore", "tls")


def candidate_secret_names(release: str) -> list[str]:
    """Return the secret names to probe for a release, in probing order."""
    candidates: list[str] = []
    for pattern in SECRET_NAME_PATTERNS:
        name = pattern.format(release=release)
        if name not in candidates:
            candidates.append(name)
    return candidates


def related_secrets(names: list[str], markers: tuple[str, ...] = RELATED_SECRET_MARKERS) -> list[str]:
    """Filter secret names down to those containing any of the markers."""
    return [name for name in names if any(marker in name for marker in markers)]


def patch_command(secret_name: str, namespace: str) -> str:
    """Return the kubectl command equivalent to the keystore patch, with the data elided."""
    patch = json.dumps({"data": {KEYSTORE_KEY: "<base64-encoded-data>"}}, separators=(",", ":"))
    return shlex.join(
        ["kubectl", "patch", "secret", secret_name, "-n", namespace, "--type=merge", f"--patch={patch}"]
    )


def detect_secret_name(cluster: Cluster, namespace: str, release: str) -> str:
    """Find the HTTPS secret of a release by probing known naming patterns.

    Args:
        cluster: Cluster to query.
        namespace: Namespace to search.
        release: Release name the patterns are derived from.

    Returns:
        The first candidate name that exists.

    Raises:
        SecretNotFoundError: If no candidate exists. Related secret names are
            printed and attached to the error.

    """
    candidates = candidate_secret_names(release)
    ic(candidates)
    for name in candidates:
        if cluster.secret_exists(name, namespace):
            return name

    related = related_secrets(cluster.list_secret_names(namespace))
    console.error(f"Could not find HTTPS secret in namespace '{namespace}'")
    console.info("Available secrets:")
    console.listing(related, empty="No HTTPS-related secrets found")
    raise SecretNotFoundError(
        f"No HTTPS secret found for release '{release}' (tried: {', '.join(candidates)})",
        namespace=namespace,
        related=related,
    )


def add_keystore_to_secret(
    cluster: Cluster,
    keystore_file: Path,
    namespace: str,
    secret_name: str,
    *,
    dry_run: bool = False,
) -> None:
    """Merge a keystore file into the ``keystore.jks`` field of an existing secret.

    Only the keystore field is touched. The secret must already exist;
    this helper never creates one.

    Args:
        cluster: Cluster to patch.
        keystore_file: Local keystore to upload.
        namespace: Namespace of the secret.
        secret_name: Name of the secret.
        dry_run: If True, run every check but only describe the patch.

    Raises:
        MissingFileError: If the keystore file does not exist.
        SecretNotFoundError: If the secret does not exist.
        PatchError: If the API server rejects the patch.
        VerificationError: If the field is empty when read back.

    """
    console.action("Adding keystore to secret...")
    console.step(f"Keystore file: {keystore_file}")
    console.step(f"Namespace: {namespace}")
    console.step(f"Secret: {secret_name}")

    if not keystore_file.is_file():
        raise MissingFileError(f"Keystore file '{keystore_file}' not found.")

    if not cluster.secret_exists(secret_name, namespace):
        raise SecretNotFoundError(
            f"Secret '{secret_name}' not found in namespace '{namespace}'.", namespace=namespace
        )

    console.step("Encoding keystore file...")
    keystore_b64 = encode(keystore_file.read_bytes())

    if dry_run:
        console.dry_run(f"Would patch secret '{secret_name}' with keystore data")
        console.info("Command that would be executed:")
        console.command(patch_command(secret_name, namespace))
        return

    with console.spinner("Patching secret with keystore..."):
        cluster.patch_secret_data(secret_name, namespace, {KEYSTORE_KEY: keystore_b64})
    console.success("Keystore successfully added to secret")

    verify_keystore(cluster, namespace, secret_name)


def verify_keystore(cluster: Cluster, namespace: str, secret_name: str) -> None:
    """Read the secret back and confirm the keystore field is populated.

    Raises:
        VerificationError: If the secret is gone or its keystore field is empty.

    """
    console.action("Verifying keystore was added...")
    data = cluster.read_secret(secret_name, namespace)
    if not data or not data.get(KEYSTORE_KEY):
        raise VerificationError(f"Keystore not found in secret '{secret_name}' after patching")
    console.success("Keystore verified in secret")
    console.step(f"Data keys: {', '.join(sorted(data))}")


def restart_geoserver(
    cluster: Cluster,
    namespace: str,
    release: str,
    *,
    dry_run: bool = False,
    timeout: int = RESTART_TIMEOUT,
) -> bool:
    """Restart the release's Deployment and wait for it to become ready.

    Args:
        cluster: Cluster to act on.
        namespace: Namespace of the Deployment.
        release: Release name, which is also the Deployment name.
        dry_run: If True, only describe the restart.
        timeout: Seconds to wait for the rollout.

    Returns:
        True if a restart was performed, False if it was skipped.

    Raises:
        RolloutTimeoutError: If the rollout does not complete in time.

    """
    deployment_name = release
    console.action("Restarting GeoServer deployment to pick up new keystore...")

    if dry_run:
        console.dry_run(f"Would restart deployment '{deployment_name}'")
        return False

    if not cluster.deployment_exists(deployment_name, namespace):
        console.warning(f"Deployment '{deployment_name}' not found. You may need to restart manually.")
        return False

    cluster.restart_deployment(deployment_name, namespace)
    cluster.wait_for_rollout(deployment_name, namespace, timeout=timeout)
    console.success("GeoServer deployment restarted successfully")
    return True
