"""OpenAPI 3.0 object model for compiled documents.

Field names are pythonic; aliases carry the OpenAPI key names, and
``OpenApi.to_dict()`` produces the wire shape. Models are frozen: updates go
through ``model_copy(update=...)`` so earlier documents never change.
Schemas stay plain dicts.
"""

from __future__ import annotations

from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, model_serializer

METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")


def _is_empty(value) -> bool:
    return value is None or (isinstance(value, (list, dict)) and not value)


class OpenApiModel(BaseModel):
    """Base model: unset optional members are left out of the output."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    always_emit: ClassVar[frozenset[str]] = frozenset()

    @model_serializer(mode="wrap")
    def _omit_empty(self, handler):
        data = handler(self)
        return {
            key: value
            for key, value in data.items()
            if key in self.always_emit or not _is_empty(value)
        }


class Contact(OpenApiModel):
    name: str | None = None
    url: str | None = None
    email: str | None = None


class License(OpenApiModel):
    name: str
    url: str | None = None


class Info(OpenApiModel):
    always_emit: ClassVar[frozenset[str]] = frozenset({"title", "version"})

    title: str = ""
    version: str = ""
    description: str | None = None
    terms_of_service: str | None = Field(default=None, alias="termsOfService")
    contact: Contact | None = None
    license: License | None = None


class Server(OpenApiModel):
    url: str
    description: str | None = None


class Tag(OpenApiModel):
    name: str
    description: str | None = None


class SecurityScheme(OpenApiModel):
    type: str  # http / apiKey / oauth2 / openIdConnect
    scheme: str | None = None  # basic / bearer
    bearer_format: str | None = Field(default=None, alias="bearerFormat")
    description: str | None = None
    name: str | None = None
    location: str | None = Field(default=None, alias="in")


class MediaType(OpenApiModel):
    schema_: dict | None = Field(default=None, alias="schema")


class HeaderObject(OpenApiModel):
    description: str | None = None
    schema_: dict | None = Field(default=None, alias="schema")


class Response(OpenApiModel):
    always_emit: ClassVar[frozenset[str]] = frozenset({"description"})

    description: str = ""
    content: dict[str, MediaType] = {}
    headers: dict[str, HeaderObject] = {}


class RequestBody(OpenApiModel):
    description: str | None = None
    content: dict[str, MediaType] = {}
    required: bool | None = None


class Parameter(OpenApiModel):
    name: str
    location: str = Field(alias="in")  # path / query / header / cookie
    required: bool | None = None
    description: str | None = None
    schema_: dict | None = Field(default=None, alias="schema")
    allow_empty_value: bool | None = Field(default=None, alias="allowEmptyValue")


class Operation(OpenApiModel):
    always_emit: ClassVar[frozenset[str]] = frozenset({"responses"})

    tags: list[str] = []
    summary: str | None = None
    description: str | None = None
    operation_id: str | None = Field(default=None, alias="operationId")
    parameters: list[Parameter] = []
    request_body: RequestBody | None = Field(default=None, alias="requestBody")
    responses: dict[str, Response] = {}  # {"200": Response, ...}
    security: list[dict[str, list[str]]] = []


class PathItem(OpenApiModel):
    get: Operation | None = None
    put: Operation | None = None
    post: Operation | None = None
    delete: Operation | None = None
    options: Operation | None = None
    head: Operation | None = None
    patch: Operation | None = None
    trace: Operation | None = None

    def operations(self) -> dict[str, Operation]:
        """Declared operations by lower-case method, in OpenAPI order."""
        return {m: getattr(self, m) for m in METHODS if getattr(self, m) is not None}

    def with_operation(self, method: str, operation: Operation) -> PathItem:
        return self.model_copy(update={method: operation})


class Components(OpenApiModel):
    schemas: dict[str, dict] = {}
    security_schemes: dict[str, SecurityScheme] = Field(default={}, alias="securitySchemes")


class OpenApi(OpenApiModel):
    """A compiled API document."""

    always_emit: ClassVar[frozenset[str]] = frozenset({"openapi", "info", "paths"})

    openapi: str = "3.0.0"
    info: Info = Info()
    servers: list[Server] = []
    paths: dict[str, PathItem] = {}
    components: Components = Components()
    security: list[dict[str, list[str]]] = []
    tags: list[Tag] = []

    def operation(self, path: str, method: str) -> Operation | None:
        item = self.paths.get(path)
        return None if item is None else getattr(item, method.lower())

    def to_dict(self) -> dict:
        """OpenAPI JSON object (key order not significant)."""
        return self.model_dump(mode="json", by_alias=True)
