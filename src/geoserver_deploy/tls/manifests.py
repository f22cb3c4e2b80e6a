"""Stand-alone TLS manifests written outside the release render.

Used by the ``ssl`` commands: a ready-to-apply HTTPS secret built from a
local keystore, and cert-manager issuers plus a certificate for ingress TLS.
"""

from pathlib import Path
from typing import Any

import yaml

from geoserver_deploy import console
from geoserver_deploy.exceptions import MissingFileError
from geoserver_deploy.secrets.keystore import KEYSTORE_KEY
from geoserver_deploy.secrets.policy import encode

KEYSTORE_PASSWORD_KEY = "keystorePassword"

_ACME_SERVERS: dict[str, str] = {
    "letsencrypt-prod": "https://acme-v02.api.letsencrypt.org/directory",
    "letsencrypt-staging": "https://acme-staging-v02.api.letsencrypt.org/directory",
}


def https_secret(keystore_file: Path, password: str, *, name: str, namespace: str) -> dict[str, Any]:
    """Build an HTTPS secret holding a keystore and its password.

    Raises:
        MissingFileError: If the keystore file does not exist.

    """
    if not keystore_file.is_file():
        raise MissingFileError(f"Keystore file '{keystore_file}' not found.")
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": name, "namespace": namespace},
        "type": "Opaque",
        "data": {
            KEYSTORE_KEY: encode(keystore_file.read_bytes()),
            KEYSTORE_PASSWORD_KEY: encode(password),
        },
    }


def cluster_issuers(email: str, *, ingress_class: str = "nginx") -> list[dict[str, Any]]:
    """Build Let's Encrypt production and staging ClusterIssuers."""
    return [
        {
            "apiVersion": "cert-manager.io/v1",
            "kind": "ClusterIssuer",
            "metadata": {"name": name},
            "spec": {
                "acme": {
                    "email": email,
                    "server": server,
                    "privateKeySecretRef": {"name": name},
                    "solvers": [{"http01": {"ingress": {"class": ingress_class}}}],
                }
            },
        }
        for name, server in _ACME_SERVERS.items()
    ]


def certificate(domain: str, *, namespace: str, secret_name: str, issuer: str = "letsencrypt-prod") -> dict[str, Any]:
    """Build a cert-manager Certificate for the ingress host."""
    return {
        "apiVersion": "cert-manager.io/v1",
        "kind": "Certificate",
        "metadata": {"name": secret_name, "namespace": namespace},
        "spec": {
            "secretName": secret_name,
            "issuerRef": {"name": issuer, "kind": "ClusterIssuer"},
            "dnsNames": [domain],
        },
    }


def write_manifests(path: Path, documents: list[dict[str, Any]]) -> Path:
    """Write one or more documents as a YAML stream and report the apply command."""
    with path.open("w") as stream:
        yaml.safe_dump_all(documents, stream, sort_keys=False)
    console.success(f"Manifest written: {console.highlight(str(path))}")
    console.step(f"Apply it with: kubectl apply -f {path}")
    return path
