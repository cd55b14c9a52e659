"""Checks that wire encodings of payload types conform to their schemas.

For every request and response body type of a route tree, samples are drawn
from the type's generator, encoded, and checked against the schema the
compiler would publish for that type. One failing sample fails the type;
other types are still checked.
"""

from __future__ import annotations

import random
from collections.abc import Mapping
from typing import Any

import structlog
from pydantic import BaseModel

from routedoc.conformance.samples import (
    Encoder,
    Generator,
    resolve_encoder,
    resolve_generator,
)
from routedoc.conformance.schema_check import PatternChecker, Violation, check
from routedoc.schema.generate import type_identity, type_label
from routedoc.schema.registry import SchemaRegistry
from routedoc.tree.nodes import ReqBody, RouteTree, flatten

logger = structlog.get_logger(__name__)

DEFAULT_SAMPLES_PER_TYPE = 100


class TypeSection(BaseModel):
    """Outcome for one payload type."""

    type_name: str  # User, list[User]
    type_id: str
    samples_checked: int
    examples: list[Any]  # encoded samples; the failing one when failed
    violation: Violation | None = None

    @property
    def passed(self) -> bool:
        return self.violation is None


class ConformanceReport(BaseModel):
    sections: list[TypeSection]

    @property
    def passed(self) -> bool:
        return all(section.passed for section in self.sections)

    @property
    def failures(self) -> list[TypeSection]:
        return [section for section in self.sections if not section.passed]

    def section(self, type_name: str) -> TypeSection:
        for section in self.sections:
            if section.type_name == type_name:
                return section
        raise KeyError(type_name)


def body_types(tree: RouteTree) -> list[Any]:
    """Request and response body types of ``tree``, deduplicated by identity."""
    found: dict[str, Any] = {}
    for entry in flatten(tree):
        for qualifier in entry.qualifiers:
            if isinstance(qualifier, ReqBody):
                found.setdefault(type_identity(qualifier.type), qualifier.type)
        returns = [entry.endpoint.returns] + [r.returns for r in entry.endpoint.responses]
        for tp in returns:
            if tp is not None:
                found.setdefault(type_identity(tp), tp)
    return list(found.values())


def validate_all(
    tree: RouteTree,
    samples_per_type: int = DEFAULT_SAMPLES_PER_TYPE,
    pattern_checkers: Mapping[Any, PatternChecker] | None = None,
    generators: Mapping[Any, Generator] | None = None,
    encoders: Mapping[Any, Encoder] | None = None,
    seed: int | None = None,
) -> ConformanceReport:
    """Check every body type of ``tree``; one report section per type.

    Raises GeneratorUnavailable / EncoderUnavailable before any sampling if
    a type lacks a collaborator.
    """
    if samples_per_type < 1:
        raise ValueError("samples_per_type must be at least 1")

    checkers = {type_identity(tp): c for tp, c in (pattern_checkers or {}).items()}
    plan = [
        (tp, resolve_generator(tp, generators), resolve_encoder(tp, encoders))
        for tp in body_types(tree)
    ]

    registry = SchemaRegistry()
    rng = random.Random(seed)
    sections = []
    for tp, generate, encode in plan:
        schema = registry.schema_of(tp)
        section = _validate_type(
            tp,
            schema,
            registry,
            generate,
            encode,
            checkers.get(type_identity(tp)),
            samples_per_type,
            rng,
        )
        sections.append(section)

    report = ConformanceReport(sections=sections)
    logger.info(
        "conformance_checked",
        types=len(sections),
        failed=[s.type_name for s in report.failures],
    )
    return report


def _validate_type(
    tp: Any,
    schema: dict,
    registry: SchemaRegistry,
    generate: Generator,
    encode: Encoder,
    pattern_checker: PatternChecker | None,
    samples: int,
    rng: random.Random,
) -> TypeSection:
    name = type_label(tp)
    first = None
    for count in range(1, samples + 1):
        value = generate(rng)
        try:
            encoded = encode(value)
        except Exception as e:  # noqa: BLE001 - an encoder crash is a finding for this type
            violation = Violation(path="$", constraint="encode", message=f"{type(e).__name__}: {e}")
            logger.warning("conformance_type_failed", type=name, constraint="encode", sample=repr(value))
            return TypeSection(
                type_name=name,
                type_id=type_identity(tp),
                samples_checked=count,
                examples=[repr(value)],
                violation=violation,
            )
        if first is None:
            first = encoded

        violation = check(encoded, schema, registry.resolve, pattern_checker)
        if violation is not None:
            logger.warning(
                "conformance_type_failed",
                type=name,
                constraint=violation.constraint,
                path=violation.path,
            )
            return TypeSection(
                type_name=name,
                type_id=type_identity(tp),
                samples_checked=count,
                examples=[encoded],
                violation=violation,
            )

    logger.debug("conformance_type_passed", type=name, samples=samples)
    return TypeSection(
        type_name=name,
        type_id=type_identity(tp),
        samples_checked=samples,
        examples=[first],
    )
