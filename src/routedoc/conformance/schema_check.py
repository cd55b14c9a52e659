"""Checks an encoded (JSON-like) value against an OpenAPI 3.0 schema.

Only the constraints compiled documents use are understood: ``$ref``,
``allOf``/``anyOf``/``oneOf``, ``nullable``, ``type``, ``enum``, numeric
bounds, string length, ``pattern``, ``format``, array and object members.
Unknown keywords are ignored.
"""

from __future__ import annotations

import re
from typing import Any, Callable

from pydantic import BaseModel

PatternChecker = Callable[[str, str], bool]  # (pattern or format, value) -> ok
Resolver = Callable[[str], dict]


class Violation(BaseModel):
    """The first constraint an encoded value breaks."""

    path: str  # $.items[0].age
    constraint: str  # required / type / maximum / pattern / ...
    message: str


_TYPE_CHECKS: dict[str, Callable[[Any], bool]] = {
    "integer": lambda v: (isinstance(v, int) and not isinstance(v, bool))
    or (isinstance(v, float) and v.is_integer()),
    "number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "string": lambda v: isinstance(v, str),
    "boolean": lambda v: isinstance(v, bool),
    "array": lambda v: isinstance(v, list),
    "object": lambda v: isinstance(v, dict),
    "null": lambda v: v is None,
}


def _json_equal(a: Any, b: Any) -> bool:
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    return a == b


def check(
    value: Any,
    schema: dict,
    resolve: Resolver,
    pattern_checker: PatternChecker | None = None,
    path: str = "$",
) -> Violation | None:
    """Return the first violation of ``schema`` by ``value``, or None."""
    return _Checker(resolve, pattern_checker).check(value, schema, path)


class _Checker:
    def __init__(self, resolve: Resolver, pattern_checker: PatternChecker | None):
        self.resolve = resolve
        self.pattern_checker = pattern_checker

    def check(self, value: Any, schema: dict, path: str) -> Violation | None:
        if "$ref" in schema:
            return self.check(value, self.resolve(schema["$ref"]), path)

        if value is None and schema.get("nullable"):
            return None

        for sub in schema.get("allOf", []):
            violation = self.check(value, sub, path)
            if violation is not None:
                return violation

        if "anyOf" in schema:
            if not any(self.check(value, sub, path) is None for sub in schema["anyOf"]):
                return Violation(path=path, constraint="anyOf", message="matches no alternative")

        if "oneOf" in schema:
            matches = sum(self.check(value, sub, path) is None for sub in schema["oneOf"])
            if matches != 1:
                return Violation(
                    path=path,
                    constraint="oneOf",
                    message=f"matches {matches} alternatives, expected exactly one",
                )

        expected = schema.get("type")
        if expected is not None:
            types = expected if isinstance(expected, list) else [expected]
            if not any(_TYPE_CHECKS.get(t, lambda v: True)(value) for t in types):
                return Violation(
                    path=path,
                    constraint="type",
                    message=f"expected {expected}, got {type(value).__name__} {value!r}",
                )

        if "enum" in schema and not any(_json_equal(value, e) for e in schema["enum"]):
            return Violation(
                path=path, constraint="enum", message=f"{value!r} not in {schema['enum']!r}"
            )

        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return self._check_number(value, schema, path)
        if isinstance(value, str):
            return self._check_string(value, schema, path)
        if isinstance(value, list):
            return self._check_array(value, schema, path)
        if isinstance(value, dict):
            return self._check_object(value, schema, path)
        return None

    def _check_number(self, value, schema: dict, path: str) -> Violation | None:
        minimum = schema.get("minimum")
        maximum = schema.get("maximum")
        exclusive_min = schema.get("exclusiveMinimum")
        exclusive_max = schema.get("exclusiveMaximum")

        # OpenAPI 3.0 spells exclusivity as a boolean next to minimum/maximum
        if exclusive_min is True:
            exclusive_min, minimum = minimum, None
        if exclusive_max is True:
            exclusive_max, maximum = maximum, None

        if minimum is not None and value < minimum:
            return Violation(path=path, constraint="minimum", message=f"{value} < {minimum}")
        if maximum is not None and value > maximum:
            return Violation(path=path, constraint="maximum", message=f"{value} > {maximum}")
        if _is_bound(exclusive_min) and value <= exclusive_min:
            return Violation(
                path=path, constraint="exclusiveMinimum", message=f"{value} <= {exclusive_min}"
            )
        if _is_bound(exclusive_max) and value >= exclusive_max:
            return Violation(
                path=path, constraint="exclusiveMaximum", message=f"{value} >= {exclusive_max}"
            )
        multiple = schema.get("multipleOf")
        if multiple and value % multiple != 0:
            return Violation(
                path=path, constraint="multipleOf", message=f"{value} is not a multiple of {multiple}"
            )
        return None

    def _check_string(self, value: str, schema: dict, path: str) -> Violation | None:
        if "minLength" in schema and len(value) < schema["minLength"]:
            return Violation(
                path=path, constraint="minLength", message=f"length {len(value)} < {schema['minLength']}"
            )
        if "maxLength" in schema and len(value) > schema["maxLength"]:
            return Violation(
                path=path, constraint="maxLength", message=f"length {len(value)} > {schema['maxLength']}"
            )
        pattern = schema.get("pattern")
        if pattern is not None:
            if self.pattern_checker is not None:
                ok = self.pattern_checker(pattern, value)
            else:
                ok = re.search(pattern, value) is not None
            if not ok:
                return Violation(
                    path=path, constraint="pattern", message=f"{value!r} does not match {pattern!r}"
                )
        fmt = schema.get("format")
        if fmt is not None and self.pattern_checker is not None:
            if not self.pattern_checker(fmt, value):
                return Violation(
                    path=path, constraint="format", message=f"{value!r} is not a valid {fmt}"
                )
        return None

    def _check_array(self, value: list, schema: dict, path: str) -> Violation | None:
        if "minItems" in schema and len(value) < schema["minItems"]:
            return Violation(
                path=path, constraint="minItems", message=f"{len(value)} items < {schema['minItems']}"
            )
        if "maxItems" in schema and len(value) > schema["maxItems"]:
            return Violation(
                path=path, constraint="maxItems", message=f"{len(value)} items > {schema['maxItems']}"
            )
        if schema.get("uniqueItems"):
            for i, item in enumerate(value):
                if any(_json_equal(item, other) for other in value[:i]):
                    return Violation(
                        path=f"{path}[{i}]", constraint="uniqueItems", message="duplicate item"
                    )
        items = schema.get("items")
        if isinstance(items, dict):
            for i, item in enumerate(value):
                violation = self.check(item, items, f"{path}[{i}]")
                if violation is not None:
                    return violation
        elif isinstance(items, list):
            # tuple form (pydantic's prefixItems spelled as items)
            for i, (item, sub) in enumerate(zip(value, items)):
                violation = self.check(item, sub, f"{path}[{i}]")
                if violation is not None:
                    return violation
        for i, sub in enumerate(schema.get("prefixItems", [])):
            if i < len(value):
                violation = self.check(value[i], sub, f"{path}[{i}]")
                if violation is not None:
                    return violation
        return None

    def _check_object(self, value: dict, schema: dict, path: str) -> Violation | None:
        for name in schema.get("required", []):
            if name not in value:
                return Violation(
                    path=f"{path}.{name}", constraint="required", message=f"missing property {name!r}"
                )
        properties = schema.get("properties", {})
        for name, sub in properties.items():
            if name in value:
                violation = self.check(value[name], sub, f"{path}.{name}")
                if violation is not None:
                    return violation
        extra = schema.get("additionalProperties", True)
        for name, item in value.items():
            if name in properties:
                continue
            if extra is False:
                return Violation(
                    path=f"{path}.{name}",
                    constraint="additionalProperties",
                    message=f"unexpected property {name!r}",
                )
            if isinstance(extra, dict):
                violation = self.check(item, extra, f"{path}.{name}")
                if violation is not None:
                    return violation
        return None


def _is_bound(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
