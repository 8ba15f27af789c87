"""Declarative field registry and the lazy, memoized evaluator behind it.

A :class:`FieldRegistry` holds the ordered :class:`FieldSpec` definitions of one
entity kind. :class:`TransformEngine` turns a raw record into a normalized
entity by resolving every declared field through a :class:`FieldContext`.
Fields may read other fields of the same record (``ctx.name`` or
``ctx.resolve("name")``); the context computes each field at most once and
detects dependency cycles while resolving.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterator, Mapping

from ..errors import CrawlerError, FieldComputationError, FieldCycleError, FieldDefinitionError

RawRecord = Mapping[str, Any]
NormalizedEntity = dict[str, Any]
FieldFunc = Callable[["FieldContext"], Any]

# Public FieldContext attributes; a field with one of these names would be
# shadowed on attribute access.
RESERVED_FIELD_NAMES = frozenset({"entity_id", "lookup", "resolve", "resolved"})


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """A named, pure computation producing one attribute of an entity."""

    name: str
    compute: FieldFunc


class FieldRegistry:
    """Ordered set of field specs for a single entity kind."""

    def __init__(self, kind: str, id_field: str = "id") -> None:
        self.kind = kind
        self.id_field = id_field
        self._specs: dict[str, FieldSpec] = {}

    def add(self, name: str, compute: FieldFunc) -> FieldSpec:
        if not name or not name.isidentifier():
            raise FieldDefinitionError(f"invalid field name {name!r} on {self.kind}")
        if name in RESERVED_FIELD_NAMES:
            raise FieldDefinitionError(f"field name {name!r} is reserved on {self.kind}")
        if name in self._specs:
            raise FieldDefinitionError(f"field {name!r} already declared on {self.kind}")
        spec = FieldSpec(name, compute)
        self._specs[name] = spec
        return spec

    def field(self, name: str) -> Callable[[FieldFunc], FieldFunc]:
        """Decorator form of :meth:`add`."""

        def decorator(func: FieldFunc) -> FieldFunc:
            self.add(name, func)
            return func

        return decorator

    def get(self, name: str) -> FieldSpec:
        try:
            return self._specs[name]
        except KeyError:
            raise FieldDefinitionError(f"unknown field {name!r} on {self.kind}") from None

    @property
    def names(self) -> list[str]:
        return list(self._specs)

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    def __iter__(self) -> Iterator[FieldSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)


class FieldContext:
    """Evaluation state for one raw record."""

    def __init__(
        self, registry: FieldRegistry, raw: RawRecord | None, entity_id: Any = None
    ) -> None:
        self._registry = registry
        self._raw: RawRecord = raw or {}
        self._explicit_id = entity_id
        self._values: dict[str, Any] = {}
        self._resolving: list[str] = []

    @property
    def entity_id(self) -> Any:
        if self._explicit_id is not None:
            return self._explicit_id
        return self._values.get(self._registry.id_field)

    @property
    def resolved(self) -> dict[str, Any]:
        return dict(self._values)

    def lookup(self, key: str) -> Any:
        """Return the raw value under ``key`` or ``None``; never raises."""

        try:
            return self._raw.get(key)
        except AttributeError:
            return None

    def resolve(self, name: str) -> Any:
        if name in self._values:
            return self._values[name]
        if name in self._resolving:
            start = self._resolving.index(name)
            raise FieldCycleError(self._resolving[start:] + [name])
        spec = self._registry.get(name)
        self._resolving.append(name)
        try:
            value = spec.compute(self)
        except CrawlerError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise FieldComputationError(name, self.entity_id, exc) from exc
        finally:
            self._resolving.pop()
        self._values[name] = value
        return value

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_") or name not in self._registry:
            raise AttributeError(name)
        return self.resolve(name)


class TransformEngine:
    """Convert raw records into normalized entities using a registry."""

    def __init__(self, registry: FieldRegistry) -> None:
        self.registry = registry
        self.validate()

    def validate(self) -> None:
        """Check the registry without evaluating any field."""

        if not len(self.registry):
            raise FieldDefinitionError(f"registry {self.registry.kind!r} declares no fields")

    @property
    def kind(self) -> str:
        return self.registry.kind

    def context(self, raw: RawRecord | None, entity_id: Any = None) -> FieldContext:
        return FieldContext(self.registry, raw, entity_id)

    def transform(self, raw: RawRecord | None, entity_id: Any = None) -> NormalizedEntity:
        ctx = self.context(raw, entity_id)
        return {spec.name: ctx.resolve(spec.name) for spec in self.registry}


__all__ = [
    "FieldContext",
    "FieldFunc",
    "FieldRegistry",
    "FieldSpec",
    "NormalizedEntity",
    "RESERVED_FIELD_NAMES",
    "RawRecord",
    "TransformEngine",
]
