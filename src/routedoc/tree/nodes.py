"""Route tree: an immutable description of an HTTP API.

A tree is built from three combinators:

    Seq(qualifier, subtree)   attach a path segment / parameter / header /
                              security requirement to every endpoint below
    Alt(left, right)          both sides, left first
    Leaf(endpoint)            a single method + response description

plus ``Empty()`` for an API with no endpoints. The operators read like the
URLs they describe::

    users = Segment("users")
    api = (
        users / Get(list[User])
        | users / Capture("user_id", UserId) / Get(User)
        | users / ReqBody(User) / Post(UserId)
    )

Types referenced by qualifiers and endpoints are any type pydantic can build
a ``TypeAdapter`` for. Nodes compare by value, types by identity.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from routedoc.openapi.models import METHODS

JSON = "application/json;charset=utf-8"
PLAIN_TEXT = "text/plain;charset=utf-8"


class _Composable:
    """Mixin giving qualifiers and prefixes the ``/`` operator."""

    def _qualifiers(self) -> tuple[Qualifier, ...]:
        raise NotImplementedError

    def __truediv__(self, other):
        if isinstance(other, (Leaf, Seq, Alt, Empty)):
            tree = other
            for qualifier in reversed(self._qualifiers()):
                tree = Seq(qualifier, tree)
            return tree
        if isinstance(other, _Composable):
            return Prefix(self._qualifiers() + other._qualifiers())
        return NotImplemented


class _Tree:
    """Mixin giving tree nodes the ``|`` operator."""

    def __or__(self, other):
        if not isinstance(other, _Tree):
            return NotImplemented
        return Alt(self, other)


# -- qualifiers ---------------------------------------------------------------


@dataclass(frozen=True)
class Segment(_Composable):
    literal: str

    def _qualifiers(self):
        return (self,)


@dataclass(frozen=True)
class Capture(_Composable):
    name: str
    type: Any
    description: str | None = None

    def _qualifiers(self):
        return (self,)


@dataclass(frozen=True)
class CaptureAll(_Composable):
    """Captures every remaining path segment as a list of ``type``."""

    name: str
    type: Any
    description: str | None = None

    def _qualifiers(self):
        return (self,)


@dataclass(frozen=True)
class QueryParam(_Composable):
    name: str
    type: Any
    required: bool = False
    description: str | None = None

    def _qualifiers(self):
        return (self,)


@dataclass(frozen=True)
class QueryParams(_Composable):
    """Repeated query parameter (``?tag=a&tag=b``)."""

    name: str
    type: Any
    description: str | None = None

    def _qualifiers(self):
        return (self,)


@dataclass(frozen=True)
class QueryFlag(_Composable):
    name: str
    description: str | None = None

    def _qualifiers(self):
        return (self,)


@dataclass(frozen=True)
class Header(_Composable):
    name: str
    type: Any
    required: bool = False
    description: str | None = None

    def _qualifiers(self):
        return (self,)


@dataclass(frozen=True)
class ReqBody(_Composable):
    type: Any
    content_types: tuple[str, ...] = (JSON,)
    description: str | None = None

    def _qualifiers(self):
        return (self,)


@dataclass(frozen=True)
class BasicAuth(_Composable):
    name: str = "basic"
    realm: str = ""

    def _qualifiers(self):
        return (self,)


@dataclass(frozen=True)
class BearerAuth(_Composable):
    name: str = "bearer"
    bearer_format: str | None = None

    def _qualifiers(self):
        return (self,)


@dataclass(frozen=True)
class Summary(_Composable):
    text: str

    def _qualifiers(self):
        return (self,)


@dataclass(frozen=True)
class Description(_Composable):
    text: str

    def _qualifiers(self):
        return (self,)


Qualifier = Union[
    Segment,
    Capture,
    CaptureAll,
    QueryParam,
    QueryParams,
    QueryFlag,
    Header,
    ReqBody,
    BasicAuth,
    BearerAuth,
    Summary,
    Description,
]


@dataclass(frozen=True)
class Prefix(_Composable):
    """A run of qualifiers waiting for the subtree they apply to."""

    qualifiers: tuple[Qualifier, ...]

    def _qualifiers(self):
        return self.qualifiers


# -- endpoints ----------------------------------------------------------------


@dataclass(frozen=True)
class ResponseHeader:
    name: str
    type: Any
    description: str | None = None


@dataclass(frozen=True)
class Respond:
    """An explicitly declared response; overrides an inferred one."""

    status: int
    description: str = ""
    returns: Any = None
    content_types: tuple[str, ...] = (JSON,)


@dataclass(frozen=True)
class Endpoint:
    method: str
    returns: Any = None  # None: no content
    status: int = 200
    content_types: tuple[str, ...] = (JSON,)
    headers: tuple[ResponseHeader, ...] = ()
    description: str = ""
    tags: tuple[str, ...] = ()
    summary: str | None = None
    responses: tuple[Respond, ...] = ()

    def __post_init__(self):
        method = self.method.lower()
        if method not in METHODS:
            raise ValueError(f"unsupported HTTP method: {self.method}")
        object.__setattr__(self, "method", method)


# -- tree nodes ---------------------------------------------------------------


@dataclass(frozen=True)
class Leaf(_Tree):
    endpoint: Endpoint


@dataclass(frozen=True)
class Seq(_Tree):
    qualifier: Qualifier
    subtree: RouteTree


@dataclass(frozen=True)
class Alt(_Tree):
    left: RouteTree
    right: RouteTree


@dataclass(frozen=True)
class Empty(_Tree):
    pass


RouteTree = Union[Leaf, Seq, Alt, Empty]


def _verb(method: str):
    def make(returns: Any = None, **kwargs) -> Leaf:
        return Leaf(Endpoint(method, returns=returns, **kwargs))

    make.__name__ = method.title()
    make.__doc__ = f"Leaf for a {method} endpoint returning ``returns``."
    return make


Get = _verb("GET")
Post = _verb("POST")
Put = _verb("PUT")
Patch = _verb("PATCH")
Delete = _verb("DELETE")


# -- traversal ----------------------------------------------------------------


@dataclass(frozen=True)
class FlatEndpoint:
    """A leaf together with every qualifier above it, outermost first."""

    qualifiers: tuple[Qualifier, ...]
    endpoint: Endpoint


def flatten(tree: RouteTree) -> list[FlatEndpoint]:
    """List the leaves of ``tree`` in left-to-right declaration order."""
    result: list[FlatEndpoint] = []
    _flatten(tree, (), result)
    return result


def _flatten(tree: RouteTree, stack: tuple, out: list[FlatEndpoint]) -> None:
    if isinstance(tree, Leaf):
        out.append(FlatEndpoint(stack, tree.endpoint))
    elif isinstance(tree, Seq):
        _flatten(tree.subtree, stack + (tree.qualifier,), out)
    elif isinstance(tree, Alt):
        _flatten(tree.left, stack, out)
        _flatten(tree.right, stack, out)
    elif isinstance(tree, Empty):
        pass
    else:
        raise TypeError(f"not a route tree node: {tree!r}")
