"""Credential retrieval helper.

Reads the generated admin secret of a release and turns it back into
something an operator can use.
"""

import shlex

from icecream import ic
from rich.markup import escape

from geoserver_deploy import console
from geoserver_deploy.core.cluster import Cluster
from geoserver_deploy.exceptions import SecretNotFoundError, VerificationError
from geoserver_deploy.models import AdminCredentials, ShellSyntax
from geoserver_deploy.secrets.policy import decode

USERNAME_KEY = "username"
PASSWORD_KEY = "password"
USER_ENV_VAR = "GEOSERVER_ADMIN_USER"
PASSWORD_ENV_VAR = "GEOSERVER_ADMIN_PASSWORD"


def admin_secret_name(release: str) -> str:
    """Return the name of the admin credential secret of a release."""
    return f"{release}-admin"


def _read_field(data: dict[str, str], key: str, secret: str) -> str:
    if not data.get(key):
        raise VerificationError(f"Admin secret '{secret}' has no '{key}' field")
    try:
        return decode(data[key])
    except ValueError as e:
        raise VerificationError(f"Admin secret '{secret}' field '{key}' is not valid base64 text") from e


def fetch_admin_credentials(cluster: Cluster, release: str, namespace: str) -> AdminCredentials:
    """Read and decode the admin credentials of a release.

    Args:
        cluster: Cluster to read from.
        release: Release name.
        namespace: Namespace of the release.

    Returns:
        The decoded credentials.

    Raises:
        SecretNotFoundError: If the admin secret does not exist. Secrets whose
            name contains the release name are printed to help the operator.
        VerificationError: If a credential field is missing, empty or not decodable text.

    """
    name = admin_secret_name(release)
    data = cluster.read_secret(name, namespace)
    if data is None:
        related = [secret for secret in cluster.list_secret_names(namespace) if release in secret]
        ic(related)
        console.error(f"Admin secret '{name}' not found in namespace '{namespace}'")
        console.info(f"Available secrets in namespace '{namespace}':")
        console.listing(related, empty=f"No secrets matching '{release}' found")
        console.newline()
        console.info("If you're using manual admin credentials, check your values configuration.")
        console.info("If you're using auto-generated passwords, make sure the release has been applied.")
        raise SecretNotFoundError(
            f"Admin secret '{name}' not found in namespace '{namespace}'", namespace=namespace, related=related
        )

    return AdminCredentials(
        username=_read_field(data, USERNAME_KEY, name),
        password=_read_field(data, PASSWORD_KEY, name),
    )


def export_lines(credentials: AdminCredentials, syntax: ShellSyntax = ShellSyntax.POSIX) -> list[str]:
    """Render environment assignments for the credentials.

    Args:
        credentials: Credentials to export.
        syntax: Target shell dialect.

    Returns:
        One assignment per variable, quoted for the target shell.

    """
    pairs = [(USER_ENV_VAR, credentials.username), (PASSWORD_ENV_VAR, credentials.password)]
    match syntax:
        case ShellSyntax.POWERSHELL:
            return [f"$env:{var} = '{value.replace(chr(39), chr(39) * 2)}'" for var, value in pairs]
        case _:
            return [f"export {var}={shlex.quote(value)}" for var, value in pairs]


def show_credentials(credentials: AdminCredentials, release: str, namespace: str) -> None:
    """Print the credentials in a summary panel."""
    console.summary_panel(
        f"GeoServer admin credentials ({namespace}/{release})",
        {"Admin Username": escape(credentials.username), "Admin Password": escape(credentials.password)},
    )
