"""Annotation helpers over compiled documents.

Each helper returns a new document; the one passed in is left untouched.
"""

from __future__ import annotations

from typing import Iterable

from routedoc.openapi.models import OpenApi, Operation, Response, Tag
from routedoc.openapi.selector import OperationKey, apply_over


def all_operations(document: OpenApi) -> list[tuple[OperationKey, Operation]]:
    """Every operation of ``document`` with its identity, in path order."""
    return [
        (OperationKey(path, method), operation)
        for path, item in document.paths.items()
        for method, operation in item.operations().items()
    ]


def _add_tags(document: OpenApi, tags: list[Tag]) -> OpenApi:
    known = [tag.name for tag in document.tags]
    merged = list(document.tags) + [tag for tag in tags if tag.name not in known]
    return document.model_copy(update={"tags": merged})


def apply_tags_for(
    selection: Iterable[OperationKey], tags: list[Tag | str], document: OpenApi
) -> OpenApi:
    """Tag the selected operations and declare ``tags`` at the top level."""
    tags = [tag if isinstance(tag, Tag) else Tag(name=tag) for tag in tags]
    names = [tag.name for tag in tags]

    def tag_operation(operation: Operation) -> Operation:
        merged = operation.tags + [name for name in names if name not in operation.tags]
        return operation.model_copy(update={"tags": merged})

    return _add_tags(apply_over(selection, document, tag_operation), tags)


def apply_tags(tags: list[Tag | str], document: OpenApi) -> OpenApi:
    """Tag every operation of ``document``."""
    return apply_tags_for([key for key, _ in all_operations(document)], tags, document)


def set_response_for(
    selection: Iterable[OperationKey], status: int, response: Response, document: OpenApi
) -> OpenApi:
    """Set (or replace) the response for ``status`` on the selected operations."""

    def replace(operation: Operation) -> Operation:
        return operation.model_copy(
            update={"responses": {**operation.responses, str(status): response}}
        )

    return apply_over(selection, document, replace)


def set_response(status: int, response: Response, document: OpenApi) -> OpenApi:
    return set_response_for([key for key, _ in all_operations(document)], status, response, document)
