"""Tests for secrets/keystore.py module."""

import pytest

from geoserver_deploy.exceptions import MissingFileError, SecretNotFoundError, VerificationError
from geoserver_deploy.secrets.keystore import (
    KEYSTORE_KEY,
    RESTART_TIMEOUT,
    add_keystore_to_secret,
    candidate_secret_names,
    detect_secret_name,
    patch_command,
    related_secrets,
    restart_geoserver,
)
from geoserver_deploy.secrets.policy import encode

NS = "geoserver"


class TestCandidateNames:
    """Tests for secret name probing order."""

    def test_probing_order(self):
        """Test candidates follow the documented order."""
        assert candidate_secret_names("geo") == [
            "geo-https",
            "geo-geoserver-https",
            "geoserver-https",
            "geo-https-keystore",
        ]

    def test_duplicates_removed(self):
        """Test a release named geoserver does not probe the same name twice."""
        names = candidate_secret_names("geoserver")

        assert names == ["geoserver-https", "geoserver-geoserver-https", "geoserver-https-keystore"]

    def test_related_secrets_filter(self):
        """Test diagnostics only list HTTPS related secrets."""
        names = ["geo-admin", "geo-tls", "my-keystore", "web-https", "default-token"]

        assert related_secrets(names) == ["geo-tls", "my-keystore", "web-https"]


class TestDetectSecretName:
    """Tests for secret auto-detection."""

    def test_first_existing_candidate_wins(self, make_cluster):
        """Test the earliest existing candidate is chosen."""
        cluster = make_cluster(
            secrets={(NS, "geoserver-https"): {}, (NS, "geo-https-keystore"): {}},
        )

        assert detect_secret_name(cluster, NS, "geo") == "geoserver-https"

    def test_preferred_name_beats_later_ones(self, make_cluster):
        """Test {release}-https is preferred over every fallback."""
        cluster = make_cluster(secrets={(NS, "geo-https"): {}, (NS, "geoserver-https"): {}})

        assert detect_secret_name(cluster, NS, "geo") == "geo-https"

    def test_other_namespaces_ignored(self, make_cluster):
        """Test a matching secret in another namespace does not count."""
        cluster = make_cluster(secrets={("other", "geo-https"): {}, (NS, "geo-https-keystore"): {}})

        assert detect_secret_name(cluster, NS, "geo") == "geo-https-keystore"

    def test_none_found_lists_related(self, make_cluster):
        """Test failure carries the HTTPS related secrets for diagnostics."""
        cluster = make_cluster(secrets={(NS, "geo-admin"): {}, (NS, "ingress-tls"): {}})

        with pytest.raises(SecretNotFoundError) as exc_info:
            detect_secret_name(cluster, NS, "geo")

        assert exc_info.value.related == ["ingress-tls"]
        assert exc_info.value.namespace == NS
        assert "geo-https" in str(exc_info.value)


class TestAddKeystoreToSecret:
    """Tests for the keystore patch."""

    def test_patch_touches_only_keystore_field(self, make_cluster, keystore_file):
        """Test the merge patch leaves other fields unchanged."""
        password = encode("keep-me")
        cluster = make_cluster(secrets={(NS, "geo-https"): {"keystorePassword": password, "keystore.jks": ""}})

        add_keystore_to_secret(cluster, keystore_file, NS, "geo-https")

        assert cluster.patches == [("geo-https", NS, {KEYSTORE_KEY: encode(keystore_file.read_bytes())})]
        stored = cluster.secrets[(NS, "geo-https")]
        assert stored["keystorePassword"] == password
        assert stored[KEYSTORE_KEY] == encode(keystore_file.read_bytes())

    def test_missing_keystore_file(self, make_cluster, tmp_path):
        """Test a missing file fails before touching the cluster."""
        cluster = make_cluster(secrets={(NS, "geo-https"): {}})

        with pytest.raises(MissingFileError):
            add_keystore_to_secret(cluster, tmp_path / "absent.jks", NS, "geo-https")

        assert cluster.patches == []

    def test_missing_secret_is_never_created(self, fake_cluster, keystore_file):
        """Test the helper refuses to create a secret."""
        with pytest.raises(SecretNotFoundError):
            add_keystore_to_secret(fake_cluster, keystore_file, NS, "geo-https")

        assert fake_cluster.secrets == {}

    def test_dry_run_makes_no_mutation(self, make_cluster, keystore_file, capsys):
        """Test dry-run resolves and checks but only prints the patch command."""
        cluster = make_cluster(secrets={(NS, "geo-https"): {"keystore.jks": ""}})

        add_keystore_to_secret(cluster, keystore_file, NS, "geo-https", dry_run=True)

        assert cluster.patches == []
        assert cluster.secrets[(NS, "geo-https")] == {"keystore.jks": ""}
        output = capsys.readouterr().out
        assert "kubectl patch secret geo-https" in output

    def test_verification_failure(self, make_cluster, keystore_file):
        """Test an empty field on read-back is reported as a verification failure."""
        cluster = make_cluster(secrets={(NS, "geo-https"): {}})
        cluster.patch_secret_data = lambda name, namespace, data: None

        with pytest.raises(VerificationError):
            add_keystore_to_secret(cluster, keystore_file, NS, "geo-https")


class TestRestartGeoserver:
    """Tests for the post-patch restart."""

    def test_restart_and_wait(self, make_cluster):
        """Test the Deployment named after the release is restarted and awaited."""
        cluster = make_cluster(deployments=[(NS, "geo")])

        assert restart_geoserver(cluster, NS, "geo") is True

        assert cluster.restarts == [("geo", NS)]
        assert cluster.waits == [("geo", NS, RESTART_TIMEOUT)]

    def test_missing_deployment_is_a_warning(self, fake_cluster):
        """Test a missing Deployment does not fail the command."""
        assert restart_geoserver(fake_cluster, NS, "geo") is False
        assert fake_cluster.restarts == []

    def test_dry_run_skips_restart(self, make_cluster):
        """Test dry-run never restarts."""
        cluster = make_cluster(deployments=[(NS, "geo")])

        assert restart_geoserver(cluster, NS, "geo", dry_run=True) is False
        assert cluster.restarts == []


def test_patch_command_elides_data():
    """Test the printed command never contains keystore bytes."""
    cmd = patch_command("geo-https", NS)

    assert cmd.startswith("kubectl patch secret geo-https -n geoserver --type=merge")
    assert "<base64-encoded-data>" in cmd
