"""Render the full resource set of a GeoServer release.

The renderer is the only place that consults the secret lifecycle policy:
it looks each secret up once through the ``lookup`` callable and embeds
the reconciled data in the rendered object.
"""

from typing import Any

import yaml
from icecream import ic

from geoserver_deploy.chart import resources
from geoserver_deploy.config import get_value
from geoserver_deploy.exceptions import ValuesError
from geoserver_deploy.models import GeneratorMode, HttpsMode, KeystoreParams
from geoserver_deploy.secrets.policy import FieldRule, FieldSource, SecretLookup, no_lookup, resolve_secret_data
from geoserver_deploy.tls.generator import build_keystore_script


def https_mode(values: dict[str, Any]) -> HttpsMode:
    """Derive the HTTPS mode from the ``https`` values."""
    if not get_value(values, "https.enabled", False):
        return HttpsMode.DISABLED
    if get_value(values, "https.autoGenerateKeystore", False):
        return HttpsMode.GENERATED
    if get_value(values, "https.keystoreSecret"):
        return HttpsMode.MANUAL
    return HttpsMode.INGRESS_ONLY


def generator_mode(values: dict[str, Any]) -> GeneratorMode:
    """Read the keystore generator mode.

    Raises:
        ValuesError: If the mode is not one of the known modes.

    """
    raw = get_value(values, "https.keystoreGenerator.mode", GeneratorMode.JOB.value)
    try:
        return GeneratorMode(raw)
    except ValueError as err:
        choices = ", ".join(m.value for m in GeneratorMode)
        raise ValuesError(f"Invalid https.keystoreGenerator.mode '{raw}' (expected one of: {choices})") from err


def keystore_params(values: dict[str, Any], namespace: str) -> KeystoreParams:
    """Build keystore generation parameters from the values tree."""
    prefix = "https.keystoreGenerator"
    defaults = KeystoreParams()
    return KeystoreParams(
        domain=str(get_value(values, f"{prefix}.domain", defaults.domain)),
        organization=str(get_value(values, f"{prefix}.organization", defaults.organization)),
        country=str(get_value(values, f"{prefix}.country", defaults.country)),
        validity_days=int(get_value(values, f"{prefix}.validityDays", defaults.validity_days)),
        alias=str(get_value(values, f"{prefix}.alias", defaults.alias)),
        namespace=namespace,
    )


def admin_rules(values: dict[str, Any]) -> list[FieldRule]:
    """Field rules for the admin credential secret.

    Raises:
        ValuesError: If auto-generation is off and no static password is configured.

    """
    username = str(get_value(values, "admin.username", "admin"))
    if get_value(values, "admin.autoGeneratePassword", True):
        return [
            FieldRule(resources.ADMIN_USERNAME_KEY, FieldSource.DEFAULTED, username),
            FieldRule(resources.ADMIN_PASSWORD_KEY, FieldSource.GENERATED),
        ]
    password = str(get_value(values, "admin.password", "") or "")
    if not password:
        raise ValuesError("admin.password must be set when admin.autoGeneratePassword is false")
    return [
        FieldRule(resources.ADMIN_USERNAME_KEY, FieldSource.LITERAL, username),
        FieldRule(resources.ADMIN_PASSWORD_KEY, FieldSource.LITERAL, password),
    ]


def https_rules(values: dict[str, Any]) -> list[FieldRule]:
    """Field rules for the HTTPS keystore secret.

    The keystore bytes are only ever defaulted to empty, so bytes an
    operator placed in the secret are carried forward.
    """
    static_password = str(get_value(values, "https.keystorePassword", "") or "")
    if static_password:
        password_rule = FieldRule(resources.KEYSTORE_PASSWORD_KEY, FieldSource.LITERAL, static_password)
    else:
        password_rule = FieldRule(resources.KEYSTORE_PASSWORD_KEY, FieldSource.GENERATED)
    return [password_rule, FieldRule(resources.KEYSTORE_KEY, FieldSource.DEFAULTED, "")]


def render_release(
    values: dict[str, Any],
    *,
    release: str,
    namespace: str,
    lookup: SecretLookup = no_lookup,
) -> list[dict[str, Any]]:
    """Render every object of a release.

    Args:
        values: The merged values tree.
        release: Release name.
        namespace: Target namespace.
        lookup: Returns the stored data of a secret in ``namespace``, or None.

    Returns:
        Objects in apply order: secrets, claims, generator job, workload, networking.

    """
    mode = https_mode(values)
    ic(release, namespace, mode)
    docs: list[dict[str, Any]] = []

    admin_name = resources.admin_secret_name(release)
    docs.append(resources.secret(admin_name, release, namespace, resolve_secret_data(admin_name, admin_rules(values), lookup)))

    init_script: str | None = None
    job_script: str | None = None
    if mode is HttpsMode.GENERATED:
        https_name = resources.https_secret_name(release)
        docs.append(
            resources.secret(https_name, release, namespace, resolve_secret_data(https_name, https_rules(values), lookup))
        )
        params = keystore_params(values, namespace)
        gen_mode = generator_mode(values)
        init_script = build_keystore_script(
            params,
            target_dir=resources.KEYSTORE_DIR,
            secret_dir=resources.KEYSTORE_SECRET_DIR,
            generate=gen_mode is GeneratorMode.INIT,
        )
        if gen_mode is GeneratorMode.JOB:
            job_script = build_keystore_script(params, target_dir=resources.KEYSTORE_DIR)
        ic(gen_mode)

    storage_class = str(get_value(values, "persistence.storageClass", "") or "")
    access_mode = str(get_value(values, "persistence.accessMode", "ReadWriteOnce"))
    if get_value(values, "persistence.enabled", False):
        docs.append(
            resources.persistent_volume_claim(
                resources.data_claim_name(release),
                release,
                namespace,
                size=str(get_value(values, "persistence.size", "10Gi")),
                access_mode=access_mode,
                storage_class=storage_class,
            )
        )
    if mode is HttpsMode.GENERATED:
        docs.append(
            resources.persistent_volume_claim(
                resources.keystore_claim_name(release),
                release,
                namespace,
                size=str(get_value(values, "https.keystoreGenerator.storageSize", "10Mi")),
                access_mode=access_mode,
                storage_class=storage_class,
                component="keystore",
            )
        )
    if job_script is not None:
        docs.append(resources.keystore_generator_job(release, namespace, values, job_script))

    docs.append(resources.deployment(release, namespace, values, mode=mode, init_script=init_script))
    docs.append(resources.service(release, namespace, values, mode=mode))

    if get_value(values, "ingress.enabled", False):
        docs.append(resources.ingress(release, namespace, values))
    if get_value(values, "autoscaling.enabled", False):
        docs.append(resources.horizontal_pod_autoscaler(release, namespace, values))
    if get_value(values, "networkPolicy.enabled", False):
        docs.append(resources.network_policy(release, namespace, values, mode=mode))

    return docs


def dump_manifests(documents: list[dict[str, Any]]) -> str:
    """Serialize rendered objects as a multi-document YAML stream."""
    return yaml.safe_dump_all(documents, sort_keys=False, default_flow_style=False)


def find_document(documents: list[dict[str, Any]], kind: str, name: str) -> dict[str, Any] | None:
    """Return the rendered object with the given kind and name, if any."""
    for doc in documents:
        if doc.get("kind") == kind and doc.get("metadata", {}).get("name") == name:
            return doc
    return None
