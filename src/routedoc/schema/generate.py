"""JSON Schema derivation for payload and parameter types.

pydantic does the derivation; ``OpenApiSchemaGenerator`` bends its JSON
Schema 2020-12 output into the OpenAPI 3.0 dialect.
"""

from __future__ import annotations

import dataclasses
import enum
import typing
from typing import Any

from pydantic import BaseModel, TypeAdapter
from pydantic.json_schema import GenerateJsonSchema

REF_PREFIX = "#/components/schemas/"
REF_TEMPLATE = REF_PREFIX + "{model}"


class OpenApiSchemaGenerator(GenerateJsonSchema):
    """OpenAPI 3.0 flavoured schemas: ``nullable``, no ``const``, no field titles."""

    def nullable_schema(self, schema):
        inner = self.generate_inner(schema["schema"])
        if "$ref" in inner:
            return {"allOf": [inner], "nullable": True}
        return {**inner, "nullable": True}

    def literal_schema(self, schema):
        json_schema = super().literal_schema(schema)
        if "const" in json_schema:
            json_schema["enum"] = [json_schema.pop("const")]
        return json_schema

    def field_title_should_be_set(self, schema) -> bool:
        return False


def derive(tp: Any) -> tuple[dict, dict[str, dict]]:
    """Return ``(schema, definitions)`` for ``tp``.

    ``schema`` may itself be a ``$ref`` (recursive types); ``definitions``
    maps component names to schemas, both with their top-level titles
    removed.
    """
    json_schema = TypeAdapter(tp).json_schema(
        ref_template=REF_TEMPLATE,
        schema_generator=OpenApiSchemaGenerator,
    )
    definitions = json_schema.pop("$defs", {})
    json_schema.pop("title", None)
    for definition in definitions.values():
        definition.pop("title", None)
    return json_schema, definitions


def is_named_type(tp: Any) -> bool:
    """Types that get their own entry under ``components.schemas``."""
    if not isinstance(tp, type) or typing.get_origin(tp) is not None:
        return False
    return (
        issubclass(tp, (BaseModel, enum.Enum))
        or dataclasses.is_dataclass(tp)
    )


def schema_name(tp: Any) -> str:
    return tp.__name__


def type_identity(tp: Any) -> str:
    """Stable key for a type: ``module.qualname`` for classes, else its repr."""
    if tp is None:
        return "None"
    if isinstance(tp, type) and not typing.get_args(tp):
        if tp.__module__ == "builtins":
            return tp.__qualname__
        return f"{tp.__module__}.{tp.__qualname__}"
    return repr(tp)


def type_label(tp: Any) -> str:
    """Short human readable name, used in reports and error messages."""
    origin = typing.get_origin(tp)
    if origin is typing.Annotated:
        return type_label(typing.get_args(tp)[0])
    if origin is not None:
        args = ", ".join(type_label(a) for a in typing.get_args(tp))
        name = getattr(origin, "__name__", None) or repr(origin).replace("typing.", "")
        return f"{name}[{args}]"
    if tp is type(None):
        return "None"
    if isinstance(tp, type):
        return tp.__name__
    return repr(tp).replace("typing.", "")


def named_types(tp: Any) -> dict[str, list[str]]:
    """Map component name -> identities of the named types reachable from ``tp``.

    More than one identity under a name means two distinct types would share
    a component entry.
    """
    found: dict[str, list[str]] = {}
    _walk(tp, found, set())
    return found


def _walk(tp: Any, found: dict[str, list[str]], seen: set[int]) -> None:
    if id(tp) in seen:
        return
    seen.add(id(tp))

    origin = typing.get_origin(tp)
    if origin is typing.Annotated:
        _walk(typing.get_args(tp)[0], found, seen)
        return
    if origin is not None:
        for arg in typing.get_args(tp):
            _walk(arg, found, seen)
        return

    if not is_named_type(tp):
        return
    identities = found.setdefault(schema_name(tp), [])
    identity = type_identity(tp)
    if identity not in identities:
        identities.append(identity)

    if issubclass(tp, BaseModel):
        for field in tp.model_fields.values():
            _walk(field.annotation, found, seen)
    elif dataclasses.is_dataclass(tp):
        for hint in typing.get_type_hints(tp).values():
            _walk(hint, found, seen)
