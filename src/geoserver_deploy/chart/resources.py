"""Builders for the Kubernetes objects of a GeoServer release.

Each builder returns a plain mapping ready for YAML serialization. Names
and labels follow one convention: every object of a release is named
after the release and carries the standard ``app.kubernetes.io`` labels.
"""

from typing import Any

from geoserver_deploy import __version__
from geoserver_deploy.config import get_value
from geoserver_deploy.models import HttpsMode

APP_NAME = "geoserver"
MANAGED_BY = "geoserver-deploy"

HTTP_PORT_NAME = "http"
HTTPS_PORT_NAME = "https"
CONTAINER_HTTP_PORT = 8080
CONTAINER_HTTPS_PORT = 8443

DATA_DIR = "/opt/geoserver_data"
KEYSTORE_DIR = "/opt/keystore"
KEYSTORE_SECRET_DIR = "/opt/keystore-secret"

ADMIN_USERNAME_KEY = "username"
ADMIN_PASSWORD_KEY = "password"
KEYSTORE_KEY = "keystore.jks"
KEYSTORE_PASSWORD_KEY = "keystorePassword"


def admin_secret_name(release: str) -> str:
    return f"{release}-admin"


def https_secret_name(release: str) -> str:
    return f"{release}-https"


def data_claim_name(release: str) -> str:
    return f"{release}-data"


def keystore_claim_name(release: str) -> str:
    return f"{release}-keystore"


def keystore_job_name(release: str) -> str:
    return f"{release}-keystore-generator"


def selector_labels(release: str) -> dict[str, str]:
    """Labels used to select the release's pods."""
    return {
        "app.kubernetes.io/name": APP_NAME,
        "app.kubernetes.io/instance": release,
    }


def labels(release: str, component: str = "server") -> dict[str, str]:
    """Full label set for an object of the release."""
    return {
        **selector_labels(release),
        "app.kubernetes.io/component": component,
        "app.kubernetes.io/managed-by": MANAGED_BY,
        "app.kubernetes.io/version": str(__version__),
    }


def metadata(name: str, release: str, namespace: str, *, component: str = "server") -> dict[str, Any]:
    return {"name": name, "namespace": namespace, "labels": labels(release, component)}


def _secret_env(name: str, secret: str, key: str) -> dict[str, Any]:
    return {"name": name, "valueFrom": {"secretKeyRef": {"name": secret, "key": key}}}


# Secrets and storage


def secret(name: str, release: str, namespace: str, data: dict[str, str]) -> dict[str, Any]:
    """Build an Opaque secret from already base64-encoded data."""
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": metadata(name, release, namespace, component="credentials"),
        "type": "Opaque",
        "data": data,
    }


def persistent_volume_claim(
    name: str,
    release: str,
    namespace: str,
    *,
    size: str,
    access_mode: str,
    storage_class: str = "",
    component: str = "storage",
) -> dict[str, Any]:
    """Build a PersistentVolumeClaim."""
    spec: dict[str, Any] = {
        "accessModes": [access_mode],
        "resources": {"requests": {"storage": size}},
    }
    if storage_class:
        spec["storageClassName"] = storage_class
    return {
        "apiVersion": "v1",
        "kind": "PersistentVolumeClaim",
        "metadata": metadata(name, release, namespace, component=component),
        "spec": spec,
    }


# Keystore generation


def _keystore_container(name: str, release: str, values: dict[str, Any], script: str) -> dict[str, Any]:
    return {
        "name": name,
        "image": get_value(values, "https.keystoreGenerator.image"),
        "command": ["sh", "-c", script],
        "env": [_secret_env("KEYSTORE_PASSWORD", https_secret_name(release), KEYSTORE_PASSWORD_KEY)],
        # chown to the fixed keystore owner needs root
        "securityContext": {"runAsUser": 0},
        "volumeMounts": [{"name": "keystore", "mountPath": KEYSTORE_DIR}],
    }


def keystore_generator_job(release: str, namespace: str, values: dict[str, Any], script: str) -> dict[str, Any]:
    """Build the one-shot Job that writes the keystore into shared storage.

    The Job is not retried; a failure is left for the operator to inspect.
    """
    return {
        "apiVersion": "batch/v1",
        "kind": "Job",
        "metadata": metadata(keystore_job_name(release), release, namespace, component="keystore-generator"),
        "spec": {
            "backoffLimit": 0,
            "template": {
                "metadata": {"labels": {**selector_labels(release), "app.kubernetes.io/component": "keystore-generator"}},
                "spec": {
                    "restartPolicy": "Never",
                    "containers": [_keystore_container("keystore-generator", release, values, script)],
                    "volumes": [
                        {"name": "keystore", "persistentVolumeClaim": {"claimName": keystore_claim_name(release)}}
                    ],
                },
            },
        },
    }


# Server workload


def _https_env(release: str, values: dict[str, Any], mode: HttpsMode) -> list[dict[str, Any]]:
    env: list[dict[str, Any]] = [{"name": "HTTPS_ENABLED", "value": str(mode is not HttpsMode.DISABLED).lower()}]
    if mode is HttpsMode.GENERATED:
        password_secret = https_secret_name(release)
    elif mode is HttpsMode.MANUAL:
        password_secret = get_value(values, "https.keystoreSecret")
    else:
        return env
    env += [
        {"name": "HTTPS_KEYSTORE_FILE", "value": f"{KEYSTORE_DIR}/{KEYSTORE_KEY}"},
        _secret_env("HTTPS_KEYSTORE_PASSWORD", password_secret, KEYSTORE_PASSWORD_KEY),
        {"name": "HTTPS_KEY_ALIAS", "value": str(get_value(values, "https.keystoreGenerator.alias", "server"))},
    ]
    return env


def _volumes(release: str, values: dict[str, Any], mode: HttpsMode) -> list[dict[str, Any]]:
    if get_value(values, "persistence.enabled", False):
        volumes: list[dict[str, Any]] = [
            {"name": "data", "persistentVolumeClaim": {"claimName": data_claim_name(release)}}
        ]
    else:
        volumes = [{"name": "data", "emptyDir": {}}]

    if mode is HttpsMode.GENERATED:
        volumes += [
            {"name": "keystore", "persistentVolumeClaim": {"claimName": keystore_claim_name(release)}},
            {"name": "keystore-secret", "secret": {"secretName": https_secret_name(release)}},
        ]
    elif mode is HttpsMode.MANUAL:
        volumes.append(
            {
                "name": "keystore",
                "secret": {
                    "secretName": get_value(values, "https.keystoreSecret"),
                    "items": [{"key": KEYSTORE_KEY, "path": KEYSTORE_KEY}],
                },
            }
        )
    return volumes


def deployment(
    release: str,
    namespace: str,
    values: dict[str, Any],
    *,
    mode: HttpsMode,
    init_script: str | None = None,
) -> dict[str, Any]:
    """Build the GeoServer Deployment.

    Args:
        release: Release name, also the Deployment name.
        namespace: Target namespace.
        values: The values tree.
        mode: HTTPS mode of the release.
        init_script: Keystore init container script, when the generator is active.

    """
    image = f"{get_value(values, 'image.repository')}:{get_value(values, 'image.tag')}"
    env: list[dict[str, Any]] = [
        _secret_env("GEOSERVER_ADMIN_USER", admin_secret_name(release), ADMIN_USERNAME_KEY),
        _secret_env("GEOSERVER_ADMIN_PASSWORD", admin_secret_name(release), ADMIN_PASSWORD_KEY),
        {"name": "GEOSERVER_DATA_DIR", "value": DATA_DIR},
        {"name": "EXTRA_JAVA_OPTS", "value": str(get_value(values, "env.javaOpts", ""))},
    ]
    env += [{"name": str(k), "value": str(v)} for k, v in (get_value(values, "env.extra") or {}).items()]
    env += _https_env(release, values, mode)

    ports = [{"name": HTTP_PORT_NAME, "containerPort": CONTAINER_HTTP_PORT, "protocol": "TCP"}]
    mounts: list[dict[str, Any]] = [{"name": "data", "mountPath": DATA_DIR}]
    if mode in (HttpsMode.GENERATED, HttpsMode.MANUAL):
        ports.append({"name": HTTPS_PORT_NAME, "containerPort": CONTAINER_HTTPS_PORT, "protocol": "TCP"})
        mounts.append({"name": "keystore", "mountPath": KEYSTORE_DIR, "readOnly": True})

    probe = {"httpGet": {"path": "/geoserver/web/", "port": HTTP_PORT_NAME}}
    container = {
        "name": APP_NAME,
        "image": image,
        "imagePullPolicy": get_value(values, "image.pullPolicy", "IfNotPresent"),
        "env": env,
        "ports": ports,
        "volumeMounts": mounts,
        "resources": get_value(values, "resources", {}),
        "readinessProbe": {**probe, "initialDelaySeconds": 30, "periodSeconds": 10},
        "livenessProbe": {**probe, "initialDelaySeconds": 120, "periodSeconds": 30, "failureThreshold": 5},
    }

    pod_spec: dict[str, Any] = {"containers": [container], "volumes": _volumes(release, values, mode)}
    if init_script is not None:
        init = _keystore_container("keystore-init", release, values, init_script)
        init["volumeMounts"].append({"name": "keystore-secret", "mountPath": KEYSTORE_SECRET_DIR, "readOnly": True})
        pod_spec["initContainers"] = [init]

    spec: dict[str, Any] = {
        "selector": {"matchLabels": selector_labels(release)},
        "template": {"metadata": {"labels": labels(release)}, "spec": pod_spec},
    }
    if not get_value(values, "autoscaling.enabled", False):
        spec = {"replicas": int(get_value(values, "replicaCount", 1)), **spec}

    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": metadata(release, release, namespace),
        "spec": spec,
    }


def service(release: str, namespace: str, values: dict[str, Any], *, mode: HttpsMode) -> dict[str, Any]:
    """Build the Service in front of the Deployment."""
    ports = [
        {
            "name": HTTP_PORT_NAME,
            "port": int(get_value(values, "service.port", CONTAINER_HTTP_PORT)),
            "targetPort": HTTP_PORT_NAME,
            "protocol": "TCP",
        }
    ]
    if mode in (HttpsMode.GENERATED, HttpsMode.MANUAL):
        ports.append(
            {
                "name": HTTPS_PORT_NAME,
                "port": int(get_value(values, "service.httpsPort", CONTAINER_HTTPS_PORT)),
                "targetPort": HTTPS_PORT_NAME,
                "protocol": "TCP",
            }
        )
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": metadata(release, release, namespace),
        "spec": {
            "type": get_value(values, "service.type", "ClusterIP"),
            "selector": selector_labels(release),
            "ports": ports,
        },
    }


def ingress(release: str, namespace: str, values: dict[str, Any]) -> dict[str, Any]:
    """Build the Ingress routing the public host to the Service's HTTP port."""
    host = get_value(values, "ingress.host")
    annotations = dict(get_value(values, "ingress.annotations") or {})
    issuer = get_value(values, "ingress.clusterIssuer")
    if issuer:
        annotations["cert-manager.io/cluster-issuer"] = issuer

    meta = metadata(release, release, namespace)
    if annotations:
        meta["annotations"] = annotations

    spec: dict[str, Any] = {
        "rules": [
            {
                "host": host,
                "http": {
                    "paths": [
                        {
                            "path": get_value(values, "ingress.path", "/geoserver"),
                            "pathType": "Prefix",
                            "backend": {"service": {"name": release, "port": {"name": HTTP_PORT_NAME}}},
                        }
                    ]
                },
            }
        ]
    }
    class_name = get_value(values, "ingress.className")
    if class_name:
        spec = {"ingressClassName": class_name, **spec}
    if get_value(values, "ingress.tls.enabled", False):
        spec["tls"] = [
            {"hosts": [host], "secretName": get_value(values, "ingress.tls.secretName") or f"{release}-tls"}
        ]

    return {"apiVersion": "networking.k8s.io/v1", "kind": "Ingress", "metadata": meta, "spec": spec}


def horizontal_pod_autoscaler(release: str, namespace: str, values: dict[str, Any]) -> dict[str, Any]:
    """Build a CPU-based HorizontalPodAutoscaler for the Deployment."""
    return {
        "apiVersion": "autoscaling/v2",
        "kind": "HorizontalPodAutoscaler",
        "metadata": metadata(release, release, namespace),
        "spec": {
            "scaleTargetRef": {"apiVersion": "apps/v1", "kind": "Deployment", "name": release},
            "minReplicas": int(get_value(values, "autoscaling.minReplicas", 1)),
            "maxReplicas": int(get_value(values, "autoscaling.maxReplicas", 3)),
            "metrics": [
                {
                    "type": "Resource",
                    "resource": {
                        "name": "cpu",
                        "target": {
                            "type": "Utilization",
                            "averageUtilization": int(
                                get_value(values, "autoscaling.targetCPUUtilizationPercentage", 80)
                            ),
                        },
                    },
                }
            ],
        },
    }


def network_policy(release: str, namespace: str, values: dict[str, Any], *, mode: HttpsMode) -> dict[str, Any]:
    """Build a NetworkPolicy admitting traffic from the ingress controller and listed namespaces."""
    allowed = [namespace, get_value(values, "networkPolicy.ingressControllerNamespace", "ingress-nginx")]
    allowed += [ns for ns in get_value(values, "networkPolicy.allowedNamespaces") or [] if ns not in allowed]

    ports = [{"protocol": "TCP", "port": CONTAINER_HTTP_PORT}]
    if mode in (HttpsMode.GENERATED, HttpsMode.MANUAL):
        ports.append({"protocol": "TCP", "port": CONTAINER_HTTPS_PORT})

    return {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "NetworkPolicy",
        "metadata": metadata(release, release, namespace),
        "spec": {
            "podSelector": {"matchLabels": selector_labels(release)},
            "policyTypes": ["Ingress"],
            "ingress": [
                {
                    "from": [
                        {"namespaceSelector": {"matchLabels": {"kubernetes.io/metadata.name": ns}}}
                        for ns in allowed
                    ],
                    "ports": ports,
                }
            ],
        },
    }
