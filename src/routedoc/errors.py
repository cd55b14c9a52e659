"""Exception hierarchy for route compilation and conformance checking.

Conformance violations are reported as data (see
``routedoc.conformance.schema_check.Violation``), not raised.
"""


class RouteDocError(Exception):
    """Base class for all routedoc errors."""


class StructuralConflict(RouteDocError):
    """Two declarations for the same identity can not be reconciled.

    Raised at compile time for inconsistent parameter or request body
    declarations on one (path, method), and by the selector for patterns
    that do not embed into their target tree.
    """

    def __init__(self, identity: str, detail: str):
        self.identity = identity
        self.detail = detail
        super().__init__(f"{identity}: {detail}")


class CollaboratorUnavailable(RouteDocError):
    """A reachable payload type lacks a collaborator needed for validation."""

    kind = "collaborator"

    def __init__(self, type_name: str):
        self.type_name = type_name
        super().__init__(f"no {self.kind} available for type {type_name}")


class GeneratorUnavailable(CollaboratorUnavailable):
    kind = "sample generator"


class EncoderUnavailable(CollaboratorUnavailable):
    kind = "wire encoder"
