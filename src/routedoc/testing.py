"""pytest integration for the conformance validator.

    from routedoc.testing import assert_section_passes, parametrize_conformance

    @parametrize_conformance(api, pattern_checkers={Email: check_email})
    def test_wire_format_matches_schema(section):
        assert_section_passes(section)

Each reachable payload type becomes its own test case, named after the type.
"""

from __future__ import annotations

import pytest

from routedoc.conformance.validator import TypeSection, validate_all
from routedoc.tree.nodes import RouteTree


def parametrize_conformance(tree: RouteTree, **kwargs):
    """``pytest.mark.parametrize`` over the sections of ``validate_all(tree, **kwargs)``."""
    report = validate_all(tree, **kwargs)
    return pytest.mark.parametrize(
        "section",
        report.sections,
        ids=[section.type_name for section in report.sections],
    )


def assert_section_passes(section: TypeSection) -> None:
    if section.passed:
        return
    violation = section.violation
    pytest.fail(
        f"{section.type_name}: sample {section.samples_checked} violates "
        f"{violation.constraint} at {violation.path}: {violation.message}\n"
        f"sample: {section.examples[0]!r}",
        pytrace=False,
    )
