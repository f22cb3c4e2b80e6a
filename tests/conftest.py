"""Shared test fixtures for geoserver-deploy tests."""

from unittest.mock import MagicMock, patch

import pytest

from geoserver_deploy.config import build_values
from geoserver_deploy.models import Environment, KeystoreParams


class FakeCluster:
    """In-memory stand-in for Cluster, keyed by (namespace, name)."""

    def __init__(self, secrets=None, deployments=(), jobs=(), ingress_host=None):
        self.context = "test-context"
        self.secrets = {key: dict(data) for key, data in (secrets or {}).items()}
        self.deployments = set(deployments)
        self.jobs = set(jobs)
        self.ingress_host = ingress_host
        self.patches = []
        self.restarts = []
        self.waits = []
        self.namespaces_created = []

    def check_connection(self):
        pass

    def read_secret(self, name, namespace):
        data = self.secrets.get((namespace, name))
        return dict(data) if data is not None else None

    def secret_exists(self, name, namespace):
        return (namespace, name) in self.secrets

    def list_secret_names(self, namespace):
        return [name for ns, name in self.secrets if ns == namespace]

    def patch_secret_data(self, name, namespace, data):
        self.patches.append((name, namespace, dict(data)))
        self.secrets[(namespace, name)].update(data)

    def ensure_namespace(self, namespace):
        self.namespaces_created.append(namespace)
        return True

    def deployment_exists(self, name, namespace):
        return (namespace, name) in self.deployments

    def job_exists(self, name, namespace):
        return (namespace, name) in self.jobs

    def restart_deployment(self, name, namespace):
        self.restarts.append((name, namespace))

    def wait_for_rollout(self, name, namespace, *, timeout):
        self.waits.append((name, namespace, timeout))

    def first_ingress_host(self, namespace):
        return self.ingress_host


@pytest.fixture
def fake_cluster():
    """Empty in-memory cluster."""
    return FakeCluster()


@pytest.fixture
def make_cluster():
    """Factory for in-memory clusters with preset state."""
    return FakeCluster


@pytest.fixture
def mock_kube_contexts():
    """Mock kubernetes config contexts."""
    with patch("kubernetes.config.list_kube_config_contexts") as mock:
        mock.return_value = ([{"name": "test-context"}], {"name": "test-context"})
        yield mock


@pytest.fixture
def mock_kube_config():
    """Mock kubernetes config loading."""
    with patch("kubernetes.config.load_kube_config") as mock:
        yield mock


@pytest.fixture
def mock_core_v1_api():
    """Mock CoreV1Api."""
    with patch("kubernetes.client.CoreV1Api") as mock:
        api_instance = MagicMock()
        mock.return_value = api_instance
        yield api_instance


@pytest.fixture
def mock_apps_v1_api():
    """Mock AppsV1Api."""
    with patch("kubernetes.client.AppsV1Api") as mock:
        api_instance = MagicMock()
        mock.return_value = api_instance
        yield api_instance


@pytest.fixture
def mock_version_api():
    """Mock VersionApi used for the connectivity check."""
    with patch("kubernetes.client.VersionApi") as mock:
        api_instance = MagicMock()
        api_instance.get_code.return_value.git_version = "v1.30.0"
        mock.return_value = api_instance
        yield api_instance


@pytest.fixture
def cluster_mocks(mock_kube_contexts, mock_kube_config, mock_core_v1_api, mock_apps_v1_api, mock_version_api):
    """Combined fixture for creating a Cluster instance without cluster access."""
    return {
        "contexts": mock_kube_contexts,
        "config": mock_kube_config,
        "core_api": mock_core_v1_api,
        "apps_api": mock_apps_v1_api,
        "version_api": mock_version_api,
    }


@pytest.fixture
def mock_subprocess():
    """Mock subprocess.run for command execution."""
    with patch("subprocess.run") as mock:
        mock.return_value = MagicMock(returncode=0, stdout="", stderr="")
        yield mock


@pytest.fixture
def dev_values():
    """Values tree of the development profile."""
    return build_values(Environment.DEV)


@pytest.fixture
def prod_values():
    """Values tree of the production profile."""
    return build_values(Environment.PROD)


@pytest.fixture
def keystore_params():
    """Keystore parameters for a namespaced release."""
    return KeystoreParams(domain="geo.example.com", namespace="geo")


@pytest.fixture
def keystore_file(tmp_path):
    """A small binary file standing in for a JKS keystore."""
    path = tmp_path / "keystore.jks"
    path.write_bytes(b"\xfe\xed\xfe\xed\x00\x00\x00\x02fake-keystore")
    return path
