"""Secrets management subpackage.

This package contains the secret lifecycle policy, the keystore patch
helper and the credential retrieval helper.
"""

from geoserver_deploy.secrets.credentials import admin_secret_name, export_lines, fetch_admin_credentials
from geoserver_deploy.secrets.keystore import (
    add_keystore_to_secret,
    candidate_secret_names,
    detect_secret_name,
    restart_geoserver,
)
from geoserver_deploy.secrets.policy import (
    FieldRule,
    FieldSource,
    generate_password,
    reconcile_secret,
    resolve_secret_data,
)

__all__ = [
    # policy
    "FieldRule",
    "FieldSource",
    "generate_password",
    "reconcile_secret",
    "resolve_secret_data",
    # keystore
    "add_keystore_to_secret",
    "candidate_secret_names",
    "detect_secret_name",
    "restart_geoserver",
    # credentials
    "admin_secret_name",
    "export_lines",
    "fetch_admin_credentials",
]
