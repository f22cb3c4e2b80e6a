"""geoserver-deploy: Deploy and operate GeoServer on Kubernetes.

This package renders the resources of a GeoServer release, applies them,
and provides the operator helpers around it: keystore generation, keystore
upload and admin credential retrieval.

Example usage:
    from geoserver_deploy import GeoServerRelease, build_values
    from geoserver_deploy.models import Environment

    values = build_values(Environment.DEV)
    with GeoServerRelease("geoserver", "geoserver") as release:
        release.deploy(Environment.DEV, values)
"""

__version__ = "0.1.0"

from geoserver_deploy.cli import cli
from geoserver_deploy.config import build_values
from geoserver_deploy.core.cluster import Cluster
from geoserver_deploy.core.release import GeoServerRelease
from geoserver_deploy.exceptions import (
    ApplyError,
    CertificateGenerationError,
    ClusterConnectionError,
    GeoServerDeployError,
    MissingFileError,
    PatchError,
    ResourceNotFoundError,
    RolloutTimeoutError,
    SecretNotFoundError,
    ToolNotFoundError,
    ValuesError,
    VerificationError,
)

__all__ = [
    # Version
    "__version__",
    # Main CLI
    "cli",
    # Classes
    "Cluster",
    "GeoServerRelease",
    "build_values",
    # Exceptions
    "GeoServerDeployError",
    "ApplyError",
    "CertificateGenerationError",
    "ClusterConnectionError",
    "MissingFileError",
    "PatchError",
    "ResourceNotFoundError",
    "RolloutTimeoutError",
    "SecretNotFoundError",
    "ToolNotFoundError",
    "ValuesError",
    "VerificationError",
]
