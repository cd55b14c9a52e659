"""CLI entry point for routedoc."""

import importlib
import json
import os
import sys
from pathlib import Path

import click
import yaml

from routedoc.config import RouteDocConfig, load_config
from routedoc.conformance.validator import validate_all
from routedoc.errors import RouteDocError
from routedoc.log import configure_logging
from routedoc.openapi.compiler import compile_api
from routedoc.openapi.models import Info
from routedoc.tree.nodes import Alt, Empty, Leaf, Seq


def _load_tree(target: str):
    """Import ``package.module:attribute`` and return the route tree it names."""
    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        raise click.BadParameter(f"expected MODULE:ATTR, got {target!r}", param_hint="API")

    if os.getcwd() not in sys.path:
        sys.path.insert(0, os.getcwd())
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(f"cannot import {module_name}: {e}", param_hint="API") from e

    tree = getattr(module, attr, None)
    if not isinstance(tree, (Leaf, Seq, Alt, Empty)):
        raise click.BadParameter(f"{target} is not a route tree", param_hint="API")
    return tree


def _setup(config_path: Path | None) -> RouteDocConfig:
    try:
        config = load_config(config_path)
    except (ValueError, yaml.YAMLError) as e:  # ValueError covers pydantic ValidationError
        raise click.ClickException(f"invalid configuration: {e}") from e
    configure_logging(json_output=config.log_format == "json", level=config.log_level)
    return config


@click.group()
def main():
    """routedoc: compile route trees to OpenAPI and check payload conformance."""
    pass


@main.command("compile")
@click.argument("api")
@click.option("-o", "--output", required=True, type=click.Path(path_type=Path), help="Output file for the OpenAPI document.")
@click.option("--format", "fmt", default="auto", type=click.Choice(["auto", "yaml", "json"]), help="Output format (auto: by file suffix).")
@click.option("--config", "config_path", default=None, type=click.Path(exists=True, path_type=Path), help="routedoc YAML config file.")
@click.option("--title", default=None, help="info.title (overrides config).")
@click.option("--api-version", default=None, help="info.version (overrides config).")
def compile_document(api: str, output: Path, fmt: str, config_path: Path | None, title: str | None, api_version: str | None):
    """Compile the route tree API (MODULE:ATTR) into an OpenAPI document."""
    config = _setup(config_path)
    tree = _load_tree(api)

    info = Info(
        title=title if title is not None else config.title,
        version=api_version if api_version is not None else config.version,
        description=config.description,
    )
    try:
        document = compile_api(tree, info=info, servers=config.servers)
    except RouteDocError as e:
        raise click.ClickException(str(e)) from e

    if fmt == "auto":
        fmt = "json" if output.suffix == ".json" else "yaml"
    data = document.to_dict()
    if fmt == "json":
        text = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    else:
        text = yaml.safe_dump(data, sort_keys=False, allow_unicode=True)

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8")
    click.echo(f"Wrote {len(document.paths)} paths to {output}")


@main.command()
@click.argument("api")
@click.option("--samples", default=None, type=click.IntRange(min=1), help="Samples per payload type (overrides config).")
@click.option("--seed", default=None, type=int, help="Random seed (overrides config).")
@click.option("--config", "config_path", default=None, type=click.Path(exists=True, path_type=Path), help="routedoc YAML config file.")
def validate(api: str, samples: int | None, seed: int | None, config_path: Path | None):
    """Check that every payload type of API encodes to its published schema."""
    config = _setup(config_path)
    tree = _load_tree(api)

    try:
        report = validate_all(
            tree,
            samples_per_type=samples if samples is not None else config.samples_per_type,
            seed=seed if seed is not None else config.seed,
        )
    except RouteDocError as e:
        raise click.ClickException(str(e)) from e

    for section in report.sections:
        if section.passed:
            click.echo(f"PASS {section.type_name} ({section.samples_checked} samples)")
        else:
            v = section.violation
            click.echo(f"FAIL {section.type_name}: {v.constraint} at {v.path}: {v.message}")
            click.echo(f"     sample: {json.dumps(section.examples[0], default=repr)}")

    failed = len(report.failures)
    click.echo(f"{len(report.sections) - failed} passed, {failed} failed")
    if failed:
        sys.exit(1)
