"""Route tree -> OpenAPI document compiler.

The tree is folded with a tuple of pending qualifiers. ``Seq`` extends the
tuple for its subtree only, ``Alt`` folds both sides with the same tuple and
merges the results (see ``routedoc.openapi.merge``), and ``Leaf`` turns the
endpoint plus every pending qualifier into an ``Operation``.

Besides the declared responses every operation gets advisory error
responses: 400 naming each required parameter or body that can fail to
decode, 404 naming each path capture that can fail to decode. Declared
responses for the same status replace them.
"""

from __future__ import annotations

from typing import Any, Iterable

import structlog

from routedoc.errors import StructuralConflict
from routedoc.openapi.merge import PathEntry, PathKey, merge_partials
from routedoc.openapi.models import (
    Components,
    HeaderObject,
    Info,
    MediaType,
    OpenApi,
    Operation,
    Parameter,
    PathItem,
    RequestBody,
    Response,
    SecurityScheme,
    Server,
)
from routedoc.schema.registry import SchemaRegistry
from routedoc.tree.nodes import (
    Alt,
    BasicAuth,
    BearerAuth,
    Capture,
    CaptureAll,
    Description,
    Empty,
    Endpoint,
    Header,
    Leaf,
    QueryFlag,
    QueryParam,
    QueryParams,
    ReqBody,
    RouteTree,
    Segment,
    Seq,
    Summary,
)

logger = structlog.get_logger(__name__)


def path_template(qualifiers: Iterable) -> tuple[PathKey, str, tuple[str, ...]]:
    """Return ``(key, display, captures)`` for a qualifier chain.

    ``key`` ignores capture names, so ``/users/{id}`` and ``/users/{user_id}``
    are the same path.
    """
    key: list[tuple] = []
    segments: list[str] = []
    captures: list[str] = []
    for qualifier in qualifiers:
        if isinstance(qualifier, Segment):
            key.append(("s", qualifier.literal))
            segments.append(qualifier.literal)
        elif isinstance(qualifier, (Capture, CaptureAll)):
            key.append(("c*",) if isinstance(qualifier, CaptureAll) else ("c",))
            segments.append("{" + qualifier.name + "}")
            captures.append(qualifier.name)
    return tuple(key), "/" + "/".join(segments), tuple(captures)


def decode_can_fail(tp: Any) -> bool:
    """Whether a textual parameter can fail to decode into ``tp``."""
    return tp is not str


def _code(name: str) -> str:
    return f"`{name}`"


class DocumentCompiler:
    """Compiles one route tree; holds the schema registry while it runs."""

    def __init__(self):
        self.registry = SchemaRegistry()
        self.security_schemes: dict[str, SecurityScheme] = {}

    def compile(self, tree: RouteTree, info: Info | None = None, servers: Iterable = ()) -> OpenApi:
        partial = self._fold(tree, ())
        paths = {
            entry.display: PathItem(**entry.operations) for entry in partial.values()
        }
        document = OpenApi(
            info=info or Info(),
            servers=[s if isinstance(s, Server) else Server(url=s) for s in servers],
            paths=paths,
            components=Components(
                schemas=self.registry.definitions(),
                security_schemes=dict(self.security_schemes),
            ),
        )
        logger.info(
            "api_compiled",
            paths=len(paths),
            operations=sum(len(entry.operations) for entry in partial.values()),
            schemas=len(self.registry),
        )
        return document

    # -- fold -----------------------------------------------------------------

    def _fold(self, tree: RouteTree, stack: tuple) -> dict[PathKey, PathEntry]:
        if isinstance(tree, Leaf):
            return self._materialize(tree.endpoint, stack)
        if isinstance(tree, Seq):
            return self._fold(tree.subtree, stack + (tree.qualifier,))
        if isinstance(tree, Alt):
            left = self._fold(tree.left, stack)
            right = self._fold(tree.right, stack)
            return merge_partials(left, right)
        if isinstance(tree, Empty):
            return {}
        raise TypeError(f"not a route tree node: {tree!r}")

    # -- leaves ---------------------------------------------------------------

    def _materialize(self, endpoint: Endpoint, stack: tuple) -> dict[PathKey, PathEntry]:
        key, display, captures = path_template(stack)
        identity = f"{endpoint.method.upper()} {display}"

        parameters: list[Parameter] = []
        body: RequestBody | None = None
        security: list[dict[str, list[str]]] = []
        summary: str | None = None
        description: str | None = None
        invalid: list[str] = []
        not_found: list[str] = []

        for qualifier in stack:
            if isinstance(qualifier, Segment):
                continue
            if isinstance(qualifier, Capture):
                parameters.append(self._param(qualifier, "path", required=True))
                if decode_can_fail(qualifier.type):
                    not_found.append(qualifier.name)
            elif isinstance(qualifier, CaptureAll):
                parameters.append(self._param(qualifier, "path", required=True, array=True))
                if decode_can_fail(qualifier.type):
                    not_found.append(qualifier.name)
            elif isinstance(qualifier, QueryParam):
                parameters.append(self._param(qualifier, "query", required=qualifier.required))
                if qualifier.required and decode_can_fail(qualifier.type):
                    invalid.append(qualifier.name)
            elif isinstance(qualifier, QueryParams):
                parameters.append(self._param(qualifier, "query", required=False, array=True))
            elif isinstance(qualifier, QueryFlag):
                parameters.append(
                    Parameter(
                        name=qualifier.name,
                        location="query",
                        required=False,
                        description=qualifier.description,
                        schema_={"type": "boolean"},
                        allow_empty_value=True,
                    )
                )
            elif isinstance(qualifier, Header):
                parameters.append(self._param(qualifier, "header", required=qualifier.required))
                if qualifier.required and decode_can_fail(qualifier.type):
                    invalid.append(qualifier.name)
            elif isinstance(qualifier, ReqBody):
                if body is not None:
                    raise StructuralConflict(identity, "request body declared twice")
                body = self._request_body(qualifier)
                invalid.append("body")
            elif isinstance(qualifier, (BasicAuth, BearerAuth)):
                security.append({qualifier.name: []})
                self._add_security_scheme(qualifier)
            elif isinstance(qualifier, Summary):
                summary = qualifier.text
            elif isinstance(qualifier, Description):
                description = qualifier.text
            else:
                raise TypeError(f"unknown qualifier: {qualifier!r}")

        seen: set[tuple[str, str]] = set()
        for param in parameters:
            if (param.location, param.name) in seen:
                raise StructuralConflict(
                    identity, f"{param.location} parameter `{param.name}` declared twice"
                )
            seen.add((param.location, param.name))

        operation = Operation(
            tags=list(endpoint.tags),
            summary=endpoint.summary if endpoint.summary is not None else summary,
            description=endpoint.description or description,
            parameters=parameters,
            request_body=body,
            responses=self._responses(endpoint, invalid, not_found),
            security=security,
        )
        return {key: PathEntry(display, captures, {endpoint.method: operation})}

    def _param(self, qualifier, location: str, required: bool, array: bool = False) -> Parameter:
        schema = self.registry.param_schema_of(qualifier.type)
        if array:
            schema = {"type": "array", "items": schema}
        return Parameter(
            name=qualifier.name,
            location=location,
            required=required,
            description=qualifier.description,
            schema_=schema,
        )

    def _request_body(self, qualifier: ReqBody) -> RequestBody:
        schema = self.registry.schema_of(qualifier.type)
        return RequestBody(
            description=qualifier.description,
            content={ct: MediaType(schema_=schema) for ct in qualifier.content_types},
            required=True,
        )

    def _content(self, returns: Any, content_types: tuple[str, ...]) -> dict[str, MediaType]:
        if returns is None:
            return {}
        schema = self.registry.schema_of(returns)
        return {ct: MediaType(schema_=schema) for ct in content_types}

    def _responses(
        self, endpoint: Endpoint, invalid: list[str], not_found: list[str]
    ) -> dict[str, Response]:
        responses = {
            str(endpoint.status): Response(
                description="",
                content=self._content(endpoint.returns, endpoint.content_types),
                headers={
                    h.name: HeaderObject(
                        description=h.description,
                        schema_=self.registry.param_schema_of(h.type),
                    )
                    for h in endpoint.headers
                },
            )
        }
        if invalid:
            responses.setdefault(
                "400",
                Response(description="Invalid " + " or ".join(_code(n) for n in invalid)),
            )
        if not_found:
            responses.setdefault(
                "404",
                Response(description=" or ".join(_code(n) for n in not_found) + " not found"),
            )
        for declared in endpoint.responses:
            responses[str(declared.status)] = Response(
                description=declared.description,
                content=self._content(declared.returns, declared.content_types),
            )
        return responses

    def _add_security_scheme(self, qualifier: BasicAuth | BearerAuth) -> None:
        if isinstance(qualifier, BasicAuth):
            scheme = SecurityScheme(
                type="http", scheme="basic", description=qualifier.realm or None
            )
        else:
            scheme = SecurityScheme(
                type="http", scheme="bearer", bearer_format=qualifier.bearer_format
            )
        existing = self.security_schemes.get(qualifier.name)
        if existing is not None and existing != scheme:
            raise StructuralConflict(
                qualifier.name, "security scheme declared with different settings"
            )
        self.security_schemes[qualifier.name] = scheme


def compile_api(
    tree: RouteTree, *, info: Info | None = None, servers: Iterable = ()
) -> OpenApi:
    """Compile ``tree`` into an OpenAPI document."""
    return DocumentCompiler().compile(tree, info=info, servers=servers)
