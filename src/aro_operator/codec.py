"""Field codec between configuration primitives and remote API field types.

Rules:
- Empty strings mean "not set" for optional strings and are omitted from
  requests (the remote API distinguishes unset from empty).
- Enums match case-insensitively and normalize to canonical casing.
- Integers sent as the API's int32 fail loudly on overflow.
"""

from __future__ import annotations

import ipaddress
import logging
import re
from enum import Enum
from typing import TypeVar

from .errors import InvalidEnumValueError, SpecValidationError

logger = logging.getLogger(__name__)

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1

# Master and agent pool names: lowercase letter first, max 12, a-z0-9 only
POOL_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9]{0,11}$")

MIN_NODE_COUNT = 1
MAX_NODE_COUNT = 100


class OSType(str, Enum):
    """Pool operating system."""

    LINUX = "Linux"
    WINDOWS = "Windows"


class AgentPoolRole(str, Enum):
    """Role of an agent pool within the cluster."""

    COMPUTE = "Compute"
    INFRA = "Infra"


class IdentityProviderKind(str, Enum):
    """Discriminator of the identity provider union (wire values)."""

    BASE = "OpenShiftManagedClusterBaseIdentityProvider"
    AAD = "AADIdentityProvider"


E = TypeVar("E", bound=Enum)


def decode_enum(value: object, enum_type: type[E], field: str) -> E:
    """Match a raw value against an enum, ignoring case.

    Raises:
        InvalidEnumValueError: If no member matches.
    """
    if isinstance(value, enum_type):
        return value
    if isinstance(value, str):
        folded = value.casefold()
        for member in enum_type:
            if str(member.value).casefold() == folded:
                return member
    raise InvalidEnumValueError(field, value, [str(m.value) for m in enum_type])


def encode_enum(value: Enum | None) -> str | None:
    """Encode an enum member to its canonical wire string."""
    if value is None:
        return None
    return str(value.value)


def decode_provider_kind(value: object) -> IdentityProviderKind:
    """Resolve an identity provider discriminator.

    Unrecognized kinds resolve to BASE. The base variant carries no
    fields, so nothing recoverable is lost.
    """
    try:
        return decode_enum(value, IdentityProviderKind, "kind")
    except InvalidEnumValueError:
        logger.debug(
            "Unrecognized identity provider kind, using base variant",
            extra={"kind": str(value)},
        )
        return IdentityProviderKind.BASE


def optional_string(value: str | None) -> str | None:
    """Treat an empty string as unset."""
    if value is None or value == "":
        return None
    return value


def encode_int32(value: int, field: str) -> int:
    """Check that a value fits the API's int32 type.

    Raises:
        OverflowError: If the value is out of range. Callers validate
            ranges first, so reaching this is a programming error.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{field} must be an int, got {type(value).__name__}")
    if not INT32_MIN <= value <= INT32_MAX:
        raise OverflowError(f"{field}={value} does not fit in int32")
    return value


def validate_cidr(value: str, field: str) -> str:
    """Validate CIDR notation, returning the value unchanged."""
    if "/" not in value:
        raise SpecValidationError(field, f"must be in CIDR notation (e.g. 10.0.0.0/24), got {value!r}")
    try:
        ipaddress.ip_network(value, strict=False)
    except ValueError as e:
        raise SpecValidationError(field, f"invalid CIDR {value!r}: {e}") from e
    return value


def validate_pool_name(value: str, field: str) -> str:
    """Validate a master or agent pool name."""
    if not isinstance(value, str) or not POOL_NAME_PATTERN.match(value):
        raise SpecValidationError(
            field,
            "must start with a lowercase letter, have max length of 12, "
            f"and only have characters a-z0-9. Got {value!r}.",
        )
    return value


def validate_node_count(value: int, field: str) -> int:
    """Validate a pool node count against the allowed range."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise SpecValidationError(field, f"must be an integer, got {value!r}")
    if not MIN_NODE_COUNT <= value <= MAX_NODE_COUNT:
        raise SpecValidationError(
            field, f"must be between {MIN_NODE_COUNT} and {MAX_NODE_COUNT}, got {value}"
        )
    return value


def normalize_location(location: str) -> str:
    """Normalize an Azure region name ("West Europe" -> "westeurope")."""
    return location.replace(" ", "").lower()


def equal_fold(left: str | None, right: str | None) -> bool:
    """Compare two optional strings ignoring case."""
    if left is None or right is None:
        return left is right
    return left.casefold() == right.casefold()
