"""Secret lifecycle policy.

Decides, for each field of a rendered secret, whether to carry forward the
value already stored in the cluster, generate a fresh random value, or use
a configured literal. ``reconcile_secret`` is pure and never talks to the
cluster; ``resolve_secret_data`` is the adapter that performs the
existence check through a lookup callable.
"""

import base64
import secrets
import string
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum

from icecream import ic

PASSWORD_LENGTH = 32
PASSWORD_ALPHABET = string.ascii_letters + string.digits

# Returns a secret's stored data mapping, or None when the secret is absent
SecretLookup = Callable[[str], Mapping[str, str] | None]


class FieldSource(str, Enum):
    """Where a secret field's value comes from on each apply."""

    GENERATED = "generated"
    DEFAULTED = "defaulted"
    LITERAL = "literal"


@dataclass(frozen=True, slots=True)
class FieldRule:
    """How one field of a secret is reconciled.

    Attributes:
        key: The field name in the secret's data.
        source: GENERATED keeps an existing non-empty value or mints a random
            password. DEFAULTED keeps an existing value or falls back to
            ``value``. LITERAL always uses ``value``.
        value: Plain-text configured value for DEFAULTED and LITERAL fields.

    """

    key: str
    source: FieldSource
    value: str = ""


def encode(value: str | bytes) -> str:
    """Base64-encode a value the way Kubernetes stores secret data."""
    raw = value.encode() if isinstance(value, str) else value
    return base64.b64encode(raw).decode("ascii")


def decode(value: str) -> str:
    """Decode a base64 secret field into text."""
    return base64.b64decode(value).decode()


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    """Generate an alphanumeric password from a cryptographically secure source.

    Args:
        length: Number of characters.

    Returns:
        The generated password.

    """
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def needs_lookup(rules: Iterable[FieldRule]) -> bool:
    """Return True if any field depends on what is already stored."""
    return any(rule.source is not FieldSource.LITERAL for rule in rules)


def reconcile_secret(existing: Mapping[str, str] | None, rules: Iterable[FieldRule]) -> dict[str, str]:
    """Compute the data of a secret from its stored state and field rules.

    Args:
        existing: The stored base64 data of the secret, or None if it does not exist.
        rules: One rule per field to render.

    Returns:
        The base64 data mapping to render. Stored values that are kept are
        copied verbatim, so re-applying is a no-op for them.

    """
    stored = existing or {}
    data: dict[str, str] = {}
    for rule in rules:
        current = stored.get(rule.key)
        match rule.source:
            case FieldSource.LITERAL:
                data[rule.key] = encode(rule.value)
            case FieldSource.GENERATED:
                data[rule.key] = current if current else encode(generate_password())
            case FieldSource.DEFAULTED:
                data[rule.key] = current if current is not None else encode(rule.value)
    return data


def resolve_secret_data(name: str, rules: Iterable[FieldRule], lookup: SecretLookup) -> dict[str, str]:
    """Look up a secret once and reconcile its fields.

    When every rule is LITERAL the lookup is skipped entirely.

    Args:
        name: The secret name to look up.
        rules: Field rules for the secret.
        lookup: Callable returning the stored data of a secret, or None.

    Returns:
        The base64 data mapping to render.

    """
    rules = list(rules)
    existing = lookup(name) if needs_lookup(rules) else None
    ic(name, existing is not None)
    return reconcile_secret(existing, rules)


def no_lookup(_name: str) -> None:
    """Lookup used for offline rendering: nothing exists yet."""
    return None
