"""Custom exceptions for geoserver-deploy.

This module defines the exception hierarchy used throughout the application
to provide meaningful error messages and proper error handling.
"""


class GeoServerDeployError(Exception):
    """Base exception for all geoserver-deploy errors.

    All custom exceptions in this package inherit from this class,
    allowing the CLI to report every operator-facing failure with a
    single except clause.
    """

    pass


class ToolNotFoundError(GeoServerDeployError):
    """Raised when a required command-line tool is not on PATH.

    This can occur when:
    - kubectl is not installed
    - openssl is not installed
    - keytool is missing because no Java runtime is installed
    """

    pass


class ClusterConnectionError(GeoServerDeployError):
    """Raised when connection to the Kubernetes cluster fails.

    This can occur when:
    - The kubeconfig is invalid or missing
    - The cluster is unreachable
    - Authentication fails
    """

    pass


class ResourceNotFoundError(GeoServerDeployError):
    """Raised when an expected cluster object does not exist."""

    pass


class SecretNotFoundError(ResourceNotFoundError):
    """Raised when a secret cannot be found or auto-detected.

    Attributes:
        namespace: The namespace that was searched.
        related: Names of existing secrets that may be what the operator meant.

    """

    def __init__(self, message: str, *, namespace: str = "", related: list[str] | None = None) -> None:
        super().__init__(message)
        self.namespace = namespace
        self.related: list[str] = related or []


class MissingFileError(GeoServerDeployError):
    """Raised when a local input file (keystore, certificate, values) is missing."""

    pass


class ValuesError(GeoServerDeployError):
    """Raised when the values tree cannot be built.

    This can occur when:
    - A values file is not valid YAML or not a mapping
    - A --set override is malformed
    - A required value (such as a static admin password) is empty
    """

    pass


class ApplyError(GeoServerDeployError):
    """Raised when kubectl rejects the rendered resource set."""

    pass


class PatchError(GeoServerDeployError):
    """Raised when the cluster rejects a patch to an existing object."""

    pass


class VerificationError(GeoServerDeployError):
    """Raised when a read-back after a successful mutation does not show the expected data."""

    pass


class RolloutTimeoutError(GeoServerDeployError):
    """Raised when a Deployment does not finish rolling out within the timeout."""

    pass


class CertificateGenerationError(GeoServerDeployError):
    """Raised when an openssl or keytool step fails."""

    pass
