"""Binary envelope and serialization codec for cached entities.

Envelope layout::

    +---------+------------------------------+
    | 1 byte  | N bytes                      |
    | version | canonical JSON (pydantic)    |
    +---------+------------------------------+

The version byte is checked on every rehydration; an unknown tag is rejected
and the caller treats the entry as a miss. Cache keys carry the same version,
so readers and writers of different formats never share a key.
"""

from __future__ import annotations

import enum
from functools import lru_cache
from typing import Any, Generic, TypeVar

from pydantic import TypeAdapter

T = TypeVar("T")

FORMAT_VERSION = 1
_VERSION_TAG = bytes([FORMAT_VERSION])


class SerializationBudgetExceeded(RuntimeError):
    """Serialized entity outgrew the budget configured for its type.

    This is a configuration defect, not a runtime condition: budgets are chosen
    per entity type and a breach must surface loudly in testing.
    """

    def __init__(self, type_name: str, size: int, budget: int) -> None:
        super().__init__(
            f"Serialized {type_name} is {size} bytes, exceeding its budget of {budget}"
        )
        self.type_name = type_name
        self.size = size
        self.budget = budget


class UnsupportedFormatError(ValueError):
    """Cached bytes are empty or carry an unknown format version."""


class Provenance(str, enum.Enum):
    FRESH = "fresh"
    REHYDRATED = "rehydrated"


@lru_cache(maxsize=None)
def _adapter(model: Any) -> TypeAdapter[Any]:
    return TypeAdapter(model)


class CachedEntity(Generic[T]):
    """Immutable envelope bytes with lazy, memoized deserialization."""

    __slots__ = ("_data", "_model", "_provenance", "_view")

    def __init__(self, data: bytes, model: Any, provenance: Provenance) -> None:
        self._data = bytes(data)
        self._model = model
        self._provenance = provenance
        self._view: T | None = None

    @property
    def payload(self) -> bytes:
        """Full envelope, version tag included; this is what the cache stores."""
        return self._data

    @property
    def provenance(self) -> Provenance:
        return self._provenance

    def __len__(self) -> int:
        return len(self._data)

    def get(self) -> T:
        """Return the read-only view, validating the payload on first access.

        List entities come back as a fresh list on every call so that callers
        sorting or filtering the result cannot change the memoized value.
        """
        if self._view is None:
            self._view = self._validate()
        if isinstance(self._view, list):
            return list(self._view)  # type: ignore[return-value]
        return self._view

    def to_owned(self) -> T:
        """Materialize an independent copy of the value."""
        return self._validate()

    def _validate(self) -> T:
        return _adapter(self._model).validate_json(self._data[1:])

    def __repr__(self) -> str:
        return (
            f"CachedEntity(model={getattr(self._model, '__name__', self._model)!r}, "
            f"provenance={self._provenance.value}, size={len(self._data)})"
        )


def serialize(value: T, budget: int, *, model: Any = None) -> CachedEntity[T]:
    """Serialize ``value`` into a fresh envelope.

    ``model`` is the type used for the round trip; it defaults to the value's
    own class and must be given explicitly for containers such as lists.
    """
    target = model if model is not None else type(value)
    body = _adapter(target).dump_json(value)
    size = len(body) + len(_VERSION_TAG)
    if size > budget:
        raise SerializationBudgetExceeded(_type_name(target), size, budget)
    return CachedEntity(_VERSION_TAG + body, target, Provenance.FRESH)


def wrap_rehydrated(data: bytes, model: Any) -> CachedEntity[Any]:
    """Wrap bytes read back from the cache without validating the schema."""
    if not data:
        raise UnsupportedFormatError("Empty cache payload")
    if data[0] != FORMAT_VERSION:
        raise UnsupportedFormatError(
            f"Unsupported cache format version {data[0]} (expected {FORMAT_VERSION})"
        )
    return CachedEntity(data, model, Provenance.REHYDRATED)


def _type_name(model: Any) -> str:
    return getattr(model, "__name__", None) or str(model)


__all__ = [
    "FORMAT_VERSION",
    "CachedEntity",
    "Provenance",
    "SerializationBudgetExceeded",
    "UnsupportedFormatError",
    "serialize",
    "wrap_rehydrated",
]
