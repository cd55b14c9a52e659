"""Selecting the operations a sub-API denotes inside a larger document.

A pattern is itself a route tree. Both trees are flattened into
(qualifier chain, endpoint) entries; every pattern entry must equal a target
entry, and matches must keep the pattern's relative order. The selection is
the (path, method) identity of each matched entry, in pattern order, with
duplicates (entries that merged into one operation) removed.

    users = sub_operations(get_users | get_user, api)
    document = users.over(document, lambda op: op.model_copy(update={"tags": ["users"]}))
"""

from __future__ import annotations

from typing import Callable, Iterable, NamedTuple

from routedoc.errors import StructuralConflict
from routedoc.openapi.compiler import path_template
from routedoc.openapi.models import OpenApi, Operation
from routedoc.tree.nodes import FlatEndpoint, RouteTree, flatten


class OperationKey(NamedTuple):
    path: str  # as spelled in the compiled document
    method: str  # lower case


def _describe(entry: FlatEndpoint) -> str:
    _, display, _ = path_template(entry.qualifiers)
    return f"{entry.endpoint.method.upper()} {display}"


def select(pattern: RouteTree, tree: RouteTree) -> list[OperationKey]:
    """Identities of the operations of ``tree`` that ``pattern`` denotes.

    Raises StructuralConflict if ``pattern`` is not a sub-API of ``tree``.
    """
    targets = flatten(tree)

    # first spelling of each template wins, as in the compiled document
    spellings: dict[tuple, str] = {}
    for entry in targets:
        key, display, _ = path_template(entry.qualifiers)
        spellings.setdefault(key, display)

    selection: list[OperationKey] = []
    position = 0
    for wanted in flatten(pattern):
        index = _find(wanted, targets, position)
        if index is None:
            if _find(wanted, targets, 0) is not None:
                detail = "pattern endpoint is out of order with respect to the target API"
            else:
                detail = "pattern endpoint does not occur in the target API"
            raise StructuralConflict(_describe(wanted), detail)
        position = index

        key, _, _ = path_template(targets[index].qualifiers)
        op_key = OperationKey(spellings[key], targets[index].endpoint.method)
        if op_key not in selection:
            selection.append(op_key)
    return selection


def _find(wanted: FlatEndpoint, targets: list[FlatEndpoint], start: int) -> int | None:
    for index in range(start, len(targets)):
        if targets[index] == wanted:
            return index
    return None


def apply_over(
    selection: Iterable[OperationKey],
    document: OpenApi,
    transform: Callable[[Operation], Operation],
) -> OpenApi:
    """Return a copy of ``document`` with ``transform`` applied once per selected operation.

    Unselected path items are shared with ``document``.
    """
    keys = list(dict.fromkeys(OperationKey(*k) for k in selection))
    for key in keys:
        if document.operation(key.path, key.method) is None:
            raise StructuralConflict(
                f"{key.method.upper()} {key.path}", "selected operation is not in the document"
            )

    paths = dict(document.paths)
    for key in keys:
        item = paths[key.path]
        paths[key.path] = item.with_operation(key.method, transform(getattr(item, key.method)))
    return document.model_copy(update={"paths": paths})


class SubOperations:
    """A pattern resolved against a tree, reusable across documents."""

    def __init__(self, pattern: RouteTree, tree: RouteTree):
        self.selection = select(pattern, tree)

    def __iter__(self):
        return iter(self.selection)

    def __len__(self) -> int:
        return len(self.selection)

    def get(self, document: OpenApi) -> list[Operation]:
        """The selected operations of ``document``, in selection order."""
        return [document.operation(key.path, key.method) for key in self.selection]

    def over(self, document: OpenApi, transform: Callable[[Operation], Operation]) -> OpenApi:
        return apply_over(self.selection, document, transform)


def sub_operations(pattern: RouteTree, tree: RouteTree) -> SubOperations:
    return SubOperations(pattern, tree)
