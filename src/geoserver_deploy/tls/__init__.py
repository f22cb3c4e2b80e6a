"""TLS subpackage.

Certificate and keystore generation plus stand-alone TLS manifests.
"""

from geoserver_deploy.tls.generator import KeystoreGenerator, build_keystore_script
from geoserver_deploy.tls.manifests import certificate, cluster_issuers, https_secret, write_manifests

__all__ = [
    "KeystoreGenerator",
    "build_keystore_script",
    "certificate",
    "cluster_issuers",
    "https_secret",
    "write_manifests",
]
