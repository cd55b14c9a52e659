"""Merging of operations that share a (path, method) identity.

Responses, tags and security requirements are unioned (right-hand side wins
a colliding status code). Parameters and request bodies must agree; any
disagreement is a StructuralConflict.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import structlog

from routedoc.errors import StructuralConflict
from routedoc.openapi.models import Operation, Parameter, RequestBody

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PathEntry:
    """Operations collected under one normalised path template."""

    display: str  # "/users/{user_id}"
    captures: tuple[str, ...]  # capture names in path order
    operations: dict[str, Operation]


PathKey = tuple  # (("s", "users"), ("c",), ...)


def merge_partials(
    left: dict[PathKey, PathEntry], right: dict[PathKey, PathEntry]
) -> dict[PathKey, PathEntry]:
    """Union of two partial documents; left paths keep their position."""
    merged = dict(left)
    for key, entry in right.items():
        if key in merged:
            merged[key] = merge_entries(merged[key], entry)
        else:
            merged[key] = entry
    return merged


def merge_entries(left: PathEntry, right: PathEntry) -> PathEntry:
    """Merge two entries for the same template; the left spelling is kept."""
    renames = {
        theirs: ours
        for ours, theirs in zip(left.captures, right.captures)
        if ours != theirs
    }
    operations = dict(left.operations)
    for method, operation in right.operations.items():
        if renames:
            operation = _rename_path_params(operation, renames)
        if method in operations:
            identity = f"{method.upper()} {left.display}"
            operations[method] = merge_operations(operations[method], operation, identity)
        else:
            operations[method] = operation
    return PathEntry(left.display, left.captures, operations)


def merge_operations(left: Operation, right: Operation, identity: str) -> Operation:
    """Merge two declarations of the same operation (right-hand side applied last)."""
    _check_parameters(left.parameters, right.parameters, identity)

    responses = dict(left.responses)
    for status, response in right.responses.items():
        previous = responses.get(status)
        if previous is not None and previous != response:
            logger.info(
                "response_override",
                operation=identity,
                status=status,
                replaced=previous.description,
                description=response.description,
            )
        responses[status] = response

    return left.model_copy(
        update={
            "tags": _union(left.tags, right.tags),
            "security": _union(left.security, right.security),
            "summary": right.summary if right.summary is not None else left.summary,
            "description": (
                right.description if right.description is not None else left.description
            ),
            "operation_id": right.operation_id or left.operation_id,
            "request_body": _merge_bodies(left.request_body, right.request_body, identity),
            "responses": responses,
        }
    )


def _union(left: list, right: list) -> list:
    merged = list(left)
    for item in right:
        if item not in merged:
            merged.append(item)
    return merged


def _check_parameters(left: list[Parameter], right: list[Parameter], identity: str) -> None:
    ours = {(p.location, p.name): p for p in left}
    theirs = {(p.location, p.name): p for p in right}

    for key in ours.keys() ^ theirs.keys():
        location, name = key
        raise StructuralConflict(
            identity, f"{location} parameter `{name}` is declared on only one side"
        )
    for key, param in ours.items():
        other = theirs[key]
        if param.schema_ != other.schema_:
            raise StructuralConflict(
                identity, f"{key[0]} parameter `{key[1]}` declared with different schemas"
            )
        if bool(param.required) != bool(other.required):
            raise StructuralConflict(
                identity, f"{key[0]} parameter `{key[1]}` declared with different required flags"
            )


def _merge_bodies(
    left: RequestBody | None, right: RequestBody | None, identity: str
) -> RequestBody | None:
    if left is None and right is None:
        return None
    if left is None or right is None:
        raise StructuralConflict(identity, "request body is declared on only one side")

    content = dict(left.content)
    for content_type, media in right.content.items():
        existing = content.get(content_type)
        if existing is not None and existing.schema_ != media.schema_:
            raise StructuralConflict(
                identity, f"request body for {content_type} declared with different schemas"
            )
        content[content_type] = media
    return left.model_copy(
        update={
            "content": content,
            "required": bool(left.required or right.required),
            "description": right.description if right.description is not None else left.description,
        }
    )


def _rename_path_params(operation: Operation, renames: dict[str, str]) -> Operation:
    parameters = [
        p.model_copy(update={"name": renames[p.name]})
        if p.location == "path" and p.name in renames
        else p
        for p in operation.parameters
    ]
    responses = dict(operation.responses)
    not_found = responses.get("404")
    if not_found is not None:
        # the inferred 404 text names captures as `name`
        description = re.sub(
            r"`([^`]+)`", lambda m: f"`{renames.get(m.group(1), m.group(1))}`", not_found.description
        )
        responses["404"] = not_found.model_copy(update={"description": description})
    return operation.model_copy(update={"parameters": parameters, "responses": responses})
