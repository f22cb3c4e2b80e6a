"""Values tree for a release.

Builds the nested configuration that parameterizes the rendered resources:
packaged defaults, an environment profile, an optional operator values file
and ``--set`` overrides, deep-merged in that order.
"""

import copy
import re
from collections.abc import Iterable, Mapping
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from icecream import ic

from geoserver_deploy.exceptions import MissingFileError, ValuesError
from geoserver_deploy.models import Environment

_PROFILES_PACKAGE = "geoserver_deploy.chart"
DEFAULT_VALUES = "values.yaml"
PROFILE_FILES: dict[Environment, str] = {
    Environment.DEV: "values-development.yaml",
    Environment.PROD: "values-production.yaml",
}
# Never coerced from --set
STRING_PATHS: frozenset[str] = frozenset({"admin.username", "admin.password", "https.keystorePassword"})
_INTEGER = re.compile(r"-?[1-9][0-9]*")


def _load_mapping(text: str, source: str) -> dict[str, Any]:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as err:
        raise ValuesError(f"Values from '{source}' contain malformed YAML: {err}") from err
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValuesError(f"Values from '{source}' must be a YAML mapping")
    return data


def load_profile(name: str) -> dict[str, Any]:
    """Load a packaged values file by file name."""
    text = resources.files(_PROFILES_PACKAGE).joinpath("profiles", name).read_text()
    return _load_mapping(text, name)


def load_values_file(path: Path) -> dict[str, Any]:
    """Load an operator-supplied values file.

    Raises:
        MissingFileError: If the file does not exist.
        ValuesError: If the file is not a YAML mapping.

    """
    if not path.is_file():
        raise MissingFileError(f"Values file '{path}' not found.")
    return _load_mapping(path.read_text(), str(path))


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``.

    Mappings merge key by key; any other value in ``override`` replaces
    the one in ``base``.
    """
    merged = copy.deepcopy(dict(base))
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def typed_value(raw: str) -> Any:
    """Coerce a ``--set`` value: ``true``/``false`` and plain base-10 integers only.

    Everything else, including ``0123``, ``0x1F``, ``on`` and ``1e3``, stays
    the exact string that was typed.
    """
    match raw:
        case "true":
            return True
        case "false":
            return False
        case "0":
            return 0
    if _INTEGER.fullmatch(raw):
        return int(raw)
    return raw


def parse_set_option(option: str) -> dict[str, Any]:
    """Turn ``a.b.c=value`` into ``{"a": {"b": {"c": value}}}``.

    Values go through :func:`typed_value`, except under credential paths,
    which always keep the literal string. An empty value stays an empty string.

    Raises:
        ValuesError: If the option has no ``=`` or an empty path segment.

    """
    path, sep, raw = option.partition("=")
    path = path.strip()
    keys = path.split(".")
    if not sep or not all(keys):
        raise ValuesError(f"Invalid --set option '{option}': expected path.to.key=value")
    value: Any = raw if path in STRING_PATHS else typed_value(raw)
    for key in reversed(keys):
        value = {key: value}
    return value


def build_values(
    environment: Environment,
    *,
    values_file: Path | None = None,
    overrides: Iterable[str] = (),
) -> dict[str, Any]:
    """Build the values tree for an environment.

    Args:
        environment: The environment profile to apply.
        values_file: Optional operator values file. Required for CUSTOM.
        overrides: ``--set`` style overrides, applied last.

    Returns:
        The merged values tree.

    Raises:
        ValuesError: If CUSTOM is selected without a values file, or an
            override is malformed.
        MissingFileError: If the values file does not exist.

    """
    values = load_profile(DEFAULT_VALUES)

    if environment is Environment.CUSTOM:
        if values_file is None:
            raise ValuesError("Custom values file not specified.")
    else:
        values = deep_merge(values, load_profile(PROFILE_FILES[environment]))

    if values_file is not None:
        values = deep_merge(values, load_values_file(values_file))

    for option in overrides:
        values = deep_merge(values, parse_set_option(option))

    ic(environment, values_file)
    return values


def get_value(values: Mapping[str, Any], path: str, default: Any = None) -> Any:
    """Read a dotted path from the values tree, returning ``default`` when absent."""
    node: Any = values
    for key in path.split("."):
        if not isinstance(node, Mapping) or key not in node:
            return default
        node = node[key]
    return node
