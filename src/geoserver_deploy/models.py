"""Data models for geoserver-deploy.

This module provides type-safe data structures shared by the chart
renderer, the secret helpers and the CLI.
"""

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple


class Environment(str, Enum):
    """Deployment environment profiles.

    Inherits from str so the value can be used directly as a CLI choice.
    """

    DEV = "dev"
    PROD = "prod"
    CUSTOM = "custom"


class GeneratorMode(str, Enum):
    """How the keystore generator runs inside the cluster."""

    JOB = "job"
    INIT = "init"


class HttpsMode(str, Enum):
    """How the server terminates HTTPS, derived from the ``https`` values.

    DISABLED: plain HTTP only.
    GENERATED: keystore secret rendered and keystore generator active.
    MANUAL: keystore read from an operator-managed secret.
    INGRESS_ONLY: TLS ends at the ingress; no keystore in the pod.
    """

    DISABLED = "disabled"
    GENERATED = "generated"
    MANUAL = "manual"
    INGRESS_ONLY = "ingress-only"


class ShellSyntax(str, Enum):
    """Shell dialects for printing environment assignments."""

    POSIX = "posix"
    POWERSHELL = "powershell"


class ReleaseTarget(NamedTuple):
    """Coordinates of one release in the cluster.

    Attributes:
        release: The release name (also the Deployment name).
        namespace: The namespace the release lives in.

    """

    release: str
    namespace: str


@dataclass(frozen=True, slots=True)
class AdminCredentials:
    """Decoded admin credentials of a release.

    Attributes:
        username: The GeoServer admin username.
        password: The GeoServer admin password.

    """

    username: str
    password: str

    def __repr__(self) -> str:
        return f"AdminCredentials(username={self.username!r}, password='***')"


@dataclass(frozen=True, slots=True)
class KeystoreParams:
    """Parameters for generating a self-signed certificate and keystore.

    Attributes:
        domain: Common name and primary subject-alternative name.
        organization: Subject organization (O=).
        country: Subject country code (C=).
        validity_days: Certificate validity period.
        alias: Key alias inside the keystore.
        namespace: Namespace used for cluster-internal wildcard names.

    """

    domain: str = "geoserver.local"
    organization: str = "GeoServer"
    country: str = "US"
    validity_days: int = 365
    alias: str = "server"
    namespace: str = ""
