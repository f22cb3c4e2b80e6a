"""Tests for secrets/credentials.py module."""

import pytest

from geoserver_deploy.exceptions import SecretNotFoundError, VerificationError
from geoserver_deploy.models import AdminCredentials, ShellSyntax
from geoserver_deploy.secrets.credentials import admin_secret_name, export_lines, fetch_admin_credentials
from geoserver_deploy.secrets.policy import encode

NS = "geoserver"


class TestFetchAdminCredentials:
    """Tests for reading the admin secret."""

    def test_decodes_fields(self, make_cluster):
        """Test both fields are decoded from base64."""
        cluster = make_cluster(
            secrets={(NS, "geo-admin"): {"username": encode("admin"), "password": encode("Xy7pQ")}},
        )

        credentials = fetch_admin_credentials(cluster, "geo", NS)

        assert credentials == AdminCredentials(username="admin", password="Xy7pQ")

    def test_missing_secret_lists_matching(self, make_cluster):
        """Test failure lists secrets whose name contains the release."""
        cluster = make_cluster(secrets={(NS, "geo-https"): {}, (NS, "unrelated"): {}})

        with pytest.raises(SecretNotFoundError) as exc_info:
            fetch_admin_credentials(cluster, "geo", NS)

        assert exc_info.value.related == ["geo-https"]
        assert "geo-admin" in str(exc_info.value)

    @pytest.mark.parametrize(
        "data",
        [
            {"username": encode("admin")},
            {"username": encode("admin"), "password": ""},
            {"username": encode("admin"), "password": encode(b"\xff\xfe")},
        ],
    )
    def test_unusable_fields(self, make_cluster, data):
        """Test missing, empty or non-text fields are reported instead of decoded to nothing."""
        cluster = make_cluster(secrets={(NS, "geo-admin"): data})

        with pytest.raises(VerificationError, match="password"):
            fetch_admin_credentials(cluster, "geo", NS)

    def test_secret_name(self):
        """Test the admin secret is named after the release."""
        assert admin_secret_name("maps") == "maps-admin"


class TestExportLines:
    """Tests for environment assignments."""

    def test_posix(self):
        """Test POSIX export lines are shell quoted."""
        lines = export_lines(AdminCredentials("admin", "a b$c"))

        assert lines == [
            "export GEOSERVER_ADMIN_USER=admin",
            "export GEOSERVER_ADMIN_PASSWORD='a b$c'",
        ]

    def test_powershell(self):
        """Test PowerShell assignments double embedded single quotes."""
        lines = export_lines(AdminCredentials("admin", "it's"), ShellSyntax.POWERSHELL)

        assert lines == [
            "$env:GEOSERVER_ADMIN_USER = 'admin'",
            "$env:GEOSERVER_ADMIN_PASSWORD = 'it''s'",
        ]


def test_repr_masks_password():
    """Test the password never shows up in debug output."""
    text = repr(AdminCredentials("admin", "topsecret"))

    assert "topsecret" not in text
    assert "admin" in text
