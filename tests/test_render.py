"""Tests for chart rendering."""

from unittest.mock import patch

import pytest
import yaml

from geoserver_deploy.chart.render import (
    admin_rules,
    dump_manifests,
    find_document,
    https_mode,
    https_rules,
    keystore_params,
    render_release,
)
from geoserver_deploy.config import build_values, deep_merge
from geoserver_deploy.exceptions import ValuesError
from geoserver_deploy.models import Environment, HttpsMode
from geoserver_deploy.secrets.policy import FieldSource, decode, encode

NS = "geo"


def _kinds(documents):
    return [(doc["kind"], doc["metadata"]["name"]) for doc in documents]


def _env(deployment):
    container = deployment["spec"]["template"]["spec"]["containers"][0]
    return {item["name"]: item for item in container["env"]}


def _with(values, **overrides):
    """Merge dotted-path overrides into a values tree."""
    result = values
    for path, value in overrides.items():
        node = value
        for key in reversed(path.split("__")):
            node = {key: node}
        result = deep_merge(result, node)
    return result


class TestHttpsMode:
    """Tests for HTTPS mode derivation."""

    def test_disabled(self, dev_values):
        assert https_mode(dev_values) is HttpsMode.DISABLED

    def test_generated(self, prod_values):
        assert https_mode(prod_values) is HttpsMode.GENERATED

    def test_manual(self, prod_values):
        values = _with(prod_values, https__autoGenerateKeystore=False, https__keystoreSecret="my-keystore")

        assert https_mode(values) is HttpsMode.MANUAL

    def test_ingress_only(self, prod_values):
        values = _with(prod_values, https__autoGenerateKeystore=False)

        assert https_mode(values) is HttpsMode.INGRESS_ONLY


class TestRules:
    """Tests for secret field rules derived from values."""

    def test_admin_generated(self, dev_values):
        rules = admin_rules(dev_values)

        assert [rule.source for rule in rules] == [FieldSource.DEFAULTED, FieldSource.GENERATED]

    def test_admin_static(self, dev_values):
        values = _with(dev_values, admin__autoGeneratePassword=False, admin__password="static")

        assert {rule.source for rule in admin_rules(values)} == {FieldSource.LITERAL}

    def test_admin_static_requires_password(self, dev_values):
        values = _with(dev_values, admin__autoGeneratePassword=False)

        with pytest.raises(ValuesError):
            admin_rules(values)

    def test_https_static_password(self, prod_values):
        values = _with(prod_values, https__keystorePassword="changeit")
        password, keystore = https_rules(values)

        assert password.source is FieldSource.LITERAL
        assert keystore.source is FieldSource.DEFAULTED

    def test_keystore_params(self, prod_values):
        params = keystore_params(_with(prod_values, https__keystoreGenerator__validityDays=90), NS)

        assert params.validity_days == 90
        assert params.namespace == NS
        assert params.alias == "server"


class TestRenderRelease:
    """Tests for the rendered resource set."""

    def test_dev_resource_set(self, dev_values):
        """Test development renders plain HTTP without a keystore."""
        documents = render_release(dev_values, release="geo", namespace=NS)

        assert _kinds(documents) == [
            ("Secret", "geo-admin"),
            ("PersistentVolumeClaim", "geo-data"),
            ("Deployment", "geo"),
            ("Service", "geo"),
            ("Ingress", "geo"),
        ]
        env = _env(find_document(documents, "Deployment", "geo"))
        assert env["HTTPS_ENABLED"]["value"] == "false"
        assert "HTTPS_KEYSTORE_FILE" not in env

    def test_prod_resource_set(self, prod_values):
        """Test production renders the generator job and networking objects."""
        documents = render_release(prod_values, release="geo", namespace=NS)

        assert _kinds(documents) == [
            ("Secret", "geo-admin"),
            ("Secret", "geo-https"),
            ("PersistentVolumeClaim", "geo-data"),
            ("PersistentVolumeClaim", "geo-keystore"),
            ("Job", "geo-keystore-generator"),
            ("Deployment", "geo"),
            ("Service", "geo"),
            ("Ingress", "geo"),
            ("HorizontalPodAutoscaler", "geo"),
            ("NetworkPolicy", "geo"),
        ]

    def test_autoscaling_omits_replicas(self, prod_values, dev_values):
        prod = find_document(render_release(prod_values, release="geo", namespace=NS), "Deployment", "geo")
        dev = find_document(render_release(dev_values, release="geo", namespace=NS), "Deployment", "geo")

        assert "replicas" not in prod["spec"]
        assert dev["spec"]["replicas"] == 1

    def test_admin_env_from_secret(self, dev_values):
        env = _env(find_document(render_release(dev_values, release="geo", namespace=NS), "Deployment", "geo"))

        assert env["GEOSERVER_ADMIN_PASSWORD"]["valueFrom"]["secretKeyRef"] == {"name": "geo-admin", "key": "password"}

    def test_generated_https_wiring(self, prod_values):
        """Test the pod gets the keystore env, volumes and a waiting init container."""
        documents = render_release(prod_values, release="geo", namespace=NS)
        deployment = find_document(documents, "Deployment", "geo")
        pod = deployment["spec"]["template"]["spec"]
        env = _env(deployment)

        assert env["HTTPS_KEYSTORE_FILE"]["value"] == "/opt/keystore/keystore.jks"
        assert env["HTTPS_KEYSTORE_PASSWORD"]["valueFrom"]["secretKeyRef"]["name"] == "geo-https"
        assert env["HTTPS_KEY_ALIAS"]["value"] == "server"
        assert {volume["name"] for volume in pod["volumes"]} == {"data", "keystore", "keystore-secret"}
        init_script = pod["initContainers"][0]["command"][2]
        assert "until [ -s /opt/keystore/keystore.jks ]" in init_script

        job_script = find_document(documents, "Job", "geo-keystore-generator")["spec"]["template"]["spec"][
            "containers"
        ][0]["command"][2]
        assert "openssl genrsa" in job_script

    def test_job_pod_labels_stable_across_versions(self, prod_values):
        """Test the job pod template labels do not follow the tool version."""
        with patch("geoserver_deploy.chart.resources.__version__", "0.1.0"):
            before = render_release(prod_values, release="geo", namespace=NS)
        with patch("geoserver_deploy.chart.resources.__version__", "9.9.9"):
            after = render_release(prod_values, release="geo", namespace=NS)

        def pod_labels(documents):
            return find_document(documents, "Job", "geo-keystore-generator")["spec"]["template"]["metadata"]["labels"]

        assert pod_labels(before) == pod_labels(after)
        assert "app.kubernetes.io/version" not in pod_labels(after)

    def test_init_mode(self, prod_values):
        """Test init mode drops the job and generates in the init container."""
        values = _with(prod_values, https__keystoreGenerator__mode="init")
        documents = render_release(values, release="geo", namespace=NS)

        assert find_document(documents, "Job", "geo-keystore-generator") is None
        init = find_document(documents, "Deployment", "geo")["spec"]["template"]["spec"]["initContainers"][0]
        assert "openssl genrsa" in init["command"][2]

    def test_invalid_generator_mode(self, prod_values):
        values = _with(prod_values, https__keystoreGenerator__mode="cron")

        with pytest.raises(ValuesError):
            render_release(values, release="geo", namespace=NS)

    def test_manual_keystore(self, prod_values):
        """Test manual mode mounts the named secret and renders no HTTPS secret."""
        values = _with(prod_values, https__autoGenerateKeystore=False, https__keystoreSecret="my-keystore")
        documents = render_release(values, release="geo", namespace=NS)
        deployment = find_document(documents, "Deployment", "geo")

        assert find_document(documents, "Secret", "geo-https") is None
        assert "initContainers" not in deployment["spec"]["template"]["spec"]
        assert _env(deployment)["HTTPS_KEYSTORE_PASSWORD"]["valueFrom"]["secretKeyRef"]["name"] == "my-keystore"

    def test_ingress_only(self, prod_values):
        """Test ingress-only TLS references no keystore anywhere."""
        values = _with(prod_values, https__autoGenerateKeystore=False)
        documents = render_release(values, release="geo", namespace=NS)
        env = _env(find_document(documents, "Deployment", "geo"))

        assert env["HTTPS_ENABLED"]["value"] == "true"
        assert "HTTPS_KEYSTORE_FILE" not in env
        assert "keystore" not in dump_manifests(documents)

    def test_ingress_tls_and_issuer(self, prod_values):
        ingress = find_document(render_release(prod_values, release="geo", namespace=NS), "Ingress", "geo")

        assert ingress["metadata"]["annotations"]["cert-manager.io/cluster-issuer"] == "letsencrypt-prod"
        assert ingress["spec"]["tls"] == [{"hosts": ["geoserver.example.com"], "secretName": "geoserver-tls"}]

    def test_labels(self, dev_values):
        for document in render_release(dev_values, release="geo", namespace=NS):
            labels = document["metadata"]["labels"]
            assert labels["app.kubernetes.io/instance"] == "geo"
            assert labels["app.kubernetes.io/managed-by"] == "geoserver-deploy"


class TestSecretReconciliation:
    """Tests for secret values across repeated renders."""

    def test_rerender_preserves_generated_values(self, prod_values):
        """Test a second render against stored state reproduces both secrets."""
        first = render_release(prod_values, release="geo", namespace=NS)
        stored = {doc["metadata"]["name"]: doc["data"] for doc in first if doc["kind"] == "Secret"}

        second = render_release(prod_values, release="geo", namespace=NS, lookup=stored.get)

        for name, data in stored.items():
            assert find_document(second, "Secret", name)["data"] == data

    def test_operator_keystore_survives_rerender(self, prod_values):
        """Test keystore bytes patched into the HTTPS secret are carried forward."""
        keystore = encode(b"\xfe\xed\xfe\xed")
        stored = {"geo-https": {"keystorePassword": encode("pw"), "keystore.jks": keystore}}

        documents = render_release(prod_values, release="geo", namespace=NS, lookup=stored.get)

        assert find_document(documents, "Secret", "geo-https")["data"]["keystore.jks"] == keystore

    def test_fresh_render_generates_password(self, dev_values):
        documents = render_release(dev_values, release="geo", namespace=NS)
        data = find_document(documents, "Secret", "geo-admin")["data"]

        assert decode(data["username"]) == "admin"
        assert len(decode(data["password"])) == 32

    def test_static_mode_never_looks_up_admin(self, dev_values):
        values = _with(dev_values, admin__autoGeneratePassword=False, admin__password="static")
        looked_up = []

        def lookup(name):
            looked_up.append(name)

        render_release(values, release="geo", namespace=NS, lookup=lookup)

        assert "geo-admin" not in looked_up


def test_dump_manifests_round_trips(dev_values):
    documents = render_release(dev_values, release="geo", namespace=NS)

    assert list(yaml.safe_load_all(dump_manifests(documents))) == documents


@pytest.mark.parametrize("literal", ["0123", "on", "0x1F", "1e3", "12345"])
def test_static_password_from_set_renders_verbatim(literal):
    values = build_values(
        Environment.DEV,
        overrides=["admin.autoGeneratePassword=false", f"admin.password={literal}", f"https.keystorePassword={literal}"],
    )
    values = deep_merge(values, {"https": {"enabled": True, "autoGenerateKeystore": True}})

    documents = render_release(values, release="geo", namespace=NS)

    assert decode(find_document(documents, "Secret", "geo-admin")["data"]["password"]) == literal
    assert decode(find_document(documents, "Secret", "geo-https")["data"]["keystorePassword"]) == literal
