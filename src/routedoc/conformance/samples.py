"""Sample generators and wire encoders for payload types.

A generator is ``Callable[[random.Random], T]``. Lookup order for a type:

1. an explicit mapping passed by the caller (keyed by type),
2. an ``arbitrary(rng)`` classmethod on the type,
3. structural derivation for containers, unions, literals and enums,
4. builtin primitives (bounded ``Annotated`` integers stay in bounds).

Models never get a generator derived from their fields: a model without
``arbitrary`` and without an explicit entry is GeneratorUnavailable.

Encoders default to pydantic's JSON-mode dump of the type.
"""

from __future__ import annotations

import enum
import random
import string
import types
import typing
from collections.abc import Mapping, Sequence
from typing import Any, Callable

from pydantic import TypeAdapter
from pydantic.errors import PydanticSchemaGenerationError
from pydantic.fields import FieldInfo

from routedoc.errors import EncoderUnavailable, GeneratorUnavailable
from routedoc.schema.generate import type_identity, type_label

Generator = Callable[[random.Random], Any]
Encoder = Callable[[Any], Any]

MAX_COLLECTION_SIZE = 5
MAX_STRING_LENGTH = 12
_ALPHABET = string.ascii_letters + string.digits + " -_."


def _by_identity(mapping: Mapping[Any, Any] | None) -> dict[str, Any]:
    return {type_identity(tp): value for tp, value in (mapping or {}).items()}


def resolve_generator(tp: Any, generators: Mapping[Any, Generator] | None = None) -> Generator:
    """Generator for ``tp``; raises GeneratorUnavailable when there is none."""
    return _generator(tp, _by_identity(generators), tp)


def resolve_encoder(tp: Any, encoders: Mapping[Any, Encoder] | None = None) -> Encoder:
    """Wire encoder for ``tp``; raises EncoderUnavailable when there is none."""
    explicit = _by_identity(encoders).get(type_identity(tp))
    if explicit is not None:
        return explicit
    try:
        adapter = TypeAdapter(tp)
    except PydanticSchemaGenerationError as e:
        raise EncoderUnavailable(type_label(tp)) from e

    def encode(value):
        return adapter.dump_python(value, mode="json")

    return encode


def _generator(tp: Any, explicit: dict[str, Generator], root: Any) -> Generator:
    if type_identity(tp) in explicit:
        return explicit[type_identity(tp)]

    origin = typing.get_origin(tp)
    args = typing.get_args(tp)

    if origin is typing.Annotated:
        base, metadata = args[0], args[1:]
        if base is int:
            return _bounded_int(*_int_bounds(metadata))
        return _generator(base, explicit, root)

    if origin is None and isinstance(tp, type) and callable(getattr(tp, "arbitrary", None)):
        return tp.arbitrary

    if origin in (list, Sequence, set, frozenset):
        element = _generator(args[0], explicit, root)
        collection = list if origin is Sequence else origin
        return lambda rng: collection(
            element(rng) for _ in range(rng.randint(0, MAX_COLLECTION_SIZE))
        )

    if origin is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            element = _generator(args[0], explicit, root)
            return lambda rng: tuple(
                element(rng) for _ in range(rng.randint(0, MAX_COLLECTION_SIZE))
            )
        parts = [_generator(a, explicit, root) for a in args]
        return lambda rng: tuple(part(rng) for part in parts)

    if origin in (dict, Mapping):
        key = _generator(args[0], explicit, root)
        value = _generator(args[1], explicit, root)
        return lambda rng: {
            key(rng): value(rng) for _ in range(rng.randint(0, MAX_COLLECTION_SIZE))
        }

    if origin in (typing.Union, types.UnionType):
        branches = [_generator(a, explicit, root) for a in args]
        return lambda rng: rng.choice(branches)(rng)

    if origin is typing.Literal:
        return lambda rng: rng.choice(args)

    if isinstance(tp, type) and issubclass(tp, enum.Enum):
        members = list(tp)
        return lambda rng: rng.choice(members)

    primitive = _PRIMITIVES.get(tp)
    if primitive is not None:
        return primitive

    raise GeneratorUnavailable(
        type_label(tp) if tp is root else f"{type_label(root)} (element {type_label(tp)})"
    )


def _int_bounds(metadata) -> tuple[int | None, int | None]:
    constraints = []
    for item in metadata:
        if isinstance(item, FieldInfo):
            constraints.extend(item.metadata)
        else:
            constraints.append(item)

    low = high = None
    for item in constraints:
        if getattr(item, "ge", None) is not None:
            low = item.ge
        if getattr(item, "gt", None) is not None:
            low = item.gt + 1
        if getattr(item, "le", None) is not None:
            high = item.le
        if getattr(item, "lt", None) is not None:
            high = item.lt - 1
    return low, high


def _bounded_int(low: int | None, high: int | None) -> Generator:
    low = -(2**64) if low is None else low
    high = 2**64 if high is None else high

    def generate(rng: random.Random) -> int:
        roll = rng.random()
        if roll < 0.1:
            return low
        if roll < 0.2:
            return high
        if roll < 0.6:
            return max(low, min(high, rng.randint(-100, 100)))
        return rng.randint(low, high)

    return generate


def _string(rng: random.Random) -> str:
    return "".join(rng.choice(_ALPHABET) for _ in range(rng.randint(0, MAX_STRING_LENGTH)))


_PRIMITIVES: dict[Any, Generator] = {
    int: _bounded_int(None, None),
    bool: lambda rng: rng.random() < 0.5,
    float: lambda rng: rng.uniform(-1e6, 1e6),
    str: _string,
    type(None): lambda rng: None,
}
