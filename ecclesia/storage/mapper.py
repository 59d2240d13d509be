"""
Entity Mapper: Domain Entities <-> Storage Records
==================================================

Translates between the frozen entity dataclasses and the plain ``dict``
records each substrate persists.

Two field namings exist on disk:

| Naming | Example        | Used by                               |
|--------|----------------|---------------------------------------|
| CAMEL  | ``fullName``   | local blobs, Redis documents (legacy) |
| SNAKE  | ``full_name``  | PostgreSQL columns                    |

Design:
- ``to_storage`` emits every field; unset optionals become ``None`` so the
  record shape is total
- ``from_storage`` is total as well: it never raises, accepts keys in
  either naming, coerces values by the field's type hint and back-fills
  the dataclass default for anything missing or uncoercible
- A missing or blank ``sector`` maps to the root sector
- Round-trip law: ``from_storage(T, to_storage(e, n), n) == e``
"""

from __future__ import annotations

import dataclasses
import logging
from enum import Enum, auto
from functools import lru_cache
from typing import Any, Mapping, Optional, Union, get_args, get_origin, get_type_hints

from ecclesia.core.constants import ROOT_SECTOR_ID

logger = logging.getLogger(__name__)


class FieldNaming(Enum):
    CAMEL = auto()
    SNAKE = auto()


class _Uncoercible(ValueError):
    pass


# =============================================================================
# FIELD NAMES
# =============================================================================

@lru_cache(maxsize=None)
def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def storage_name(attr: str, naming: FieldNaming) -> str:
    """Name of entity attribute ``attr`` in a record of the given naming."""
    return _camel(attr) if naming is FieldNaming.CAMEL else attr


@lru_cache(maxsize=None)
def _field_specs(entity_type: type) -> tuple[tuple[str, Any, dataclasses.Field], ...]:
    hints = get_type_hints(entity_type)
    return tuple((f.name, hints[f.name], f) for f in dataclasses.fields(entity_type))


def storage_fields(entity_type: type, naming: FieldNaming) -> list[str]:
    """Record keys produced by ``to_storage`` for ``entity_type``, in field order."""
    return [storage_name(name, naming) for name, _, _ in _field_specs(entity_type)]


def has_field(entity_type: type, attr: str) -> bool:
    return any(name == attr for name, _, _ in _field_specs(entity_type))


# =============================================================================
# ENCODING
# =============================================================================

def to_storage_value(value: Any) -> Any:
    """Plain representation of a single attribute value."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, tuple):
        return list(value)
    return value


def to_storage(entity: Any, naming: FieldNaming = FieldNaming.CAMEL) -> dict[str, Any]:
    """
    Encode ``entity`` as a storage record.

    Every dataclass field is present in the result.
    """
    return {
        storage_name(name, naming): to_storage_value(getattr(entity, name))
        for name, _, _ in _field_specs(type(entity))
    }


# =============================================================================
# DECODING
# =============================================================================

def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "sim"):
            return True
        if lowered in ("false", "0", "no", "nao", "não"):
            return False
    raise _Uncoercible(f"not a boolean: {value!r}")


def _coerce(hint: Any, value: Any) -> Any:
    origin = get_origin(hint)

    if origin is Union:
        if value is None:
            return None
        inner = [arg for arg in get_args(hint) if arg is not type(None)]
        return _coerce(inner[0], value)

    if origin is tuple:
        if isinstance(value, str):
            return (value,) if value else ()
        if isinstance(value, (list, tuple)):
            return tuple(str(item) for item in value if item is not None)
        raise _Uncoercible(f"not a sequence: {value!r}")

    if value is None:
        raise _Uncoercible("null")

    if isinstance(hint, type) and issubclass(hint, Enum):
        if isinstance(value, hint):
            return value
        try:
            return hint(value)
        except ValueError:
            pass
        try:
            return hint[str(value)]
        except KeyError:
            raise _Uncoercible(f"not a {hint.__name__}: {value!r}") from None

    if hint is bool:
        return _coerce_bool(value)
    if hint is int:
        return int(float(value))
    if hint is float:
        return float(value)
    if hint is str:
        if isinstance(value, (dict, list, tuple)):
            raise _Uncoercible(f"not a string: {value!r}")
        return str(value)

    return value


def _default(spec: dataclasses.Field) -> Any:
    if spec.default is not dataclasses.MISSING:
        return spec.default
    if spec.default_factory is not dataclasses.MISSING:
        return spec.default_factory()
    return ""


def from_storage(
    entity_type: type,
    record: Optional[Mapping[str, Any]],
    naming: FieldNaming = FieldNaming.CAMEL,
) -> Any:
    """
    Decode a storage record into ``entity_type``.

    Never raises. Keys are looked up in ``naming`` first, then in the other
    naming, so legacy and relational records both decode.
    """
    if not isinstance(record, Mapping):
        logger.warning(
            "Non-mapping record replaced by defaults",
            extra={"entity_type": entity_type.__name__, "record_type": type(record).__name__},
        )
        record = {}

    other = FieldNaming.SNAKE if naming is FieldNaming.CAMEL else FieldNaming.CAMEL
    values: dict[str, Any] = {}

    for name, hint, spec in _field_specs(entity_type):
        key = storage_name(name, naming)
        if key not in record:
            key = storage_name(name, other)

        if key in record:
            try:
                value = _coerce(hint, record[key])
            except (ValueError, TypeError, ArithmeticError):
                value = _default(spec)
        else:
            value = _default(spec)

        if name == "sector" and not value:
            value = ROOT_SECTOR_ID
        values[name] = value

    return entity_type(**values)


__all__ = [
    "FieldNaming",
    "storage_name",
    "storage_fields",
    "has_field",
    "to_storage",
    "to_storage_value",
    "from_storage",
]
