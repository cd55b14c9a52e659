"""Schema registry: named component schemas keyed by type identity."""

from __future__ import annotations

import copy
from typing import Any

import structlog

from routedoc.errors import StructuralConflict
from routedoc.schema.generate import (
    REF_PREFIX,
    derive,
    is_named_type,
    named_types,
    schema_name,
    type_identity,
)

logger = structlog.get_logger(__name__)


class SchemaRegistry:
    """Deduplicating store behind ``components.schemas``.

    Two types never share an entry, even when their schemas are identical;
    a second type claiming a name already taken is a StructuralConflict.
    """

    def __init__(self):
        self._schemas: dict[str, dict] = {}
        self._owners: dict[str, str] = {}
        self._usage: dict[str, dict] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)

    def names(self) -> list[str]:
        return list(self._schemas)

    def definitions(self) -> dict[str, dict]:
        return copy.deepcopy(self._schemas)

    def owner(self, name: str) -> str:
        """Identity of the type registered under ``name``."""
        return self._owners[name]

    def register(self, name: str, identity: str, schema: dict) -> dict:
        """Store ``schema`` as component ``name`` and return a reference to it."""
        owner = self._owners.get(name)
        if owner is None:
            self._owners[name] = identity
            self._schemas[name] = schema
            logger.debug("schema_registered", name=name, identity=identity)
        elif owner != identity:
            raise StructuralConflict(
                name,
                f"component name claimed by both {owner} and {identity}",
            )
        return {"$ref": REF_PREFIX + name}

    def schema_of(self, tp: Any) -> dict:
        """Schema to use where a ``tp`` value is a request or response body."""
        identity = type_identity(tp)
        if identity in self._usage:
            return copy.deepcopy(self._usage[identity])

        schema, definitions = derive(tp)
        self._register_definitions(tp, definitions)
        if is_named_type(tp) and "$ref" not in schema:
            schema = self.register(schema_name(tp), identity, schema)

        self._usage[identity] = schema
        return copy.deepcopy(schema)

    def param_schema_of(self, tp: Any) -> dict:
        """Inline schema for a path, query or header bound ``tp``."""
        schema, definitions = derive(tp)
        ref = schema.get("$ref")
        if ref is not None and ref.startswith(REF_PREFIX):
            name = ref[len(REF_PREFIX):]
            schema = copy.deepcopy(definitions[name])
            others = [d for n, d in definitions.items() if n != name]
            # recursive types still point at their own component
            if not any(_refers_to(node, ref) for node in [schema, *others]):
                del definitions[name]
        self._register_definitions(tp, definitions)
        return schema

    def resolve(self, ref: str) -> dict:
        """Look up a ``#/components/schemas/...`` reference."""
        if not ref.startswith(REF_PREFIX):
            raise KeyError(ref)
        return self._schemas[ref[len(REF_PREFIX):]]

    def _register_definitions(self, tp: Any, definitions: dict[str, dict]) -> None:
        owners = named_types(tp)
        for name, identities in owners.items():
            if len(identities) > 1:
                raise StructuralConflict(
                    name,
                    "component name claimed by " + " and ".join(identities),
                )
        for name, schema in definitions.items():
            identities = owners.get(name)
            # pydantic-mangled names (generic models) are keyed by name alone
            identity = identities[0] if identities else name
            self.register(name, identity, schema)


def _refers_to(node: Any, ref: str) -> bool:
    if isinstance(node, dict):
        return node.get("$ref") == ref or any(_refers_to(v, ref) for v in node.values())
    if isinstance(node, list):
        return any(_refers_to(item, ref) for item in node)
    return False
