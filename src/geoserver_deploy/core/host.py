"""Host system utilities for geoserver-deploy.

This module provides the Host class for locating the external tools the
helpers shell out to, and for securing generated files on disk.
"""

import os
import platform
import shutil
from pathlib import Path

from icecream import ic

from geoserver_deploy.exceptions import ToolNotFoundError
from geoserver_deploy.models import ShellSyntax

# Install hints shown when a tool is missing
_INSTALL_HINTS: dict[str, str] = {
    "kubectl": "Please install kubectl first.",
    "openssl": "Please install OpenSSL first.",
    "keytool": "Please install Java first.",
}

# Fixed non-root owner for keystore material inside the cluster
KEYSTORE_OWNER: tuple[int, int] = (1000, 1000)
KEYSTORE_FILE_MODE = 0o600


def secure_file(path: Path, *, owner: tuple[int, int] | None = None) -> None:
    """Restrict a file to its owner and optionally change ownership.

    Args:
        path: The file to secure.
        owner: Optional (uid, gid) to chown the file to.

    """
    path.chmod(KEYSTORE_FILE_MODE)
    if owner is not None:
        os.chown(path, *owner)


class Host:
    """Manages host system lookups for the external tools used by the helpers.

    Attributes:
        system: Detected operating system name as reported by ``platform``.

    """

    def __init__(self) -> None:
        """Initialize Host with platform detection."""
        self.system: str = platform.system()

    def __repr__(self) -> str:
        """Return a detailed string representation for debugging."""
        return f"Host(system={self.system!r})"

    @property
    def default_shell(self) -> ShellSyntax:
        """The shell syntax operators on this platform most likely use."""
        match self.system:
            case "Windows":
                return ShellSyntax.POWERSHELL
            case _:
                return ShellSyntax.POSIX

    @staticmethod
    def which(tool: str) -> str:
        """Return the full path of a tool on PATH.

        Args:
            tool: The executable name (e.g., 'kubectl').

        Returns:
            The resolved executable path.

        Raises:
            ToolNotFoundError: If the tool is not on PATH.

        """
        path = shutil.which(tool)
        ic(tool, path)
        if path is None:
            hint = _INSTALL_HINTS.get(tool, f"Please install {tool} first.")
            raise ToolNotFoundError(f"{tool} is not installed. {hint}")
        return path

    def require(self, *tools: str) -> dict[str, str]:
        """Ensure every listed tool is available.

        Args:
            tools: Executable names to check.

        Returns:
            Mapping of tool name to resolved path.

        Raises:
            ToolNotFoundError: For the first tool that is missing.

        """
        return {tool: self.which(tool) for tool in tools}
