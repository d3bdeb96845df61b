"""CLI entry point: native-bindgen.

Subcommands:
    native-bindgen init-config -o bindgen.json   # Write a configuration template
    native-bindgen check-env                     # Host + toolchain gate only
    native-bindgen run --config bindgen.json     # Full pipeline
    native-bindgen extract path/to/header.h      # Show extracted signatures
    native-bindgen generate external/include     # Emit bindings from a header tree
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from native_bindgen.config import (
    BUILD_TYPES,
    WRAPPER_POLICIES,
    BuildConfig,
    config_template,
    load_config,
)
from native_bindgen.core.logging import setup_logging
from native_bindgen.exceptions import ConfigError, EmissionError, PipelineAborted

_STATUS_ICONS = {
    "completed": "+",
    "failed": "!",
    "skipped": "-",
    "running": "~",
    "pending": ".",
}


def _load(config_file: str | None, **overrides) -> BuildConfig:
    try:
        return load_config(config_file).with_overrides(**overrides)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def _echo_summary(summary: dict) -> None:
    click.echo(f"\nPipeline summary (total: {summary['total_duration']}s):")
    for s in summary["stages"]:
        icon = _STATUS_ICONS.get(s["status"], "?")
        duration = f" ({s['duration']}s)" if s["duration"] else ""
        detail = f" - {s['detail']}" if s["detail"] else ""
        click.echo(f"  [{icon}] {s['stage']}{duration}{detail}")


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
def main(verbose: bool) -> None:
    """native-bindgen: build a native C++ dependency and generate its C bindings."""
    setup_logging(verbose)


@main.command("init-config")
@click.option("-o", "--output", default="bindgen.json", help="Output file path")
def init_config(output: str) -> None:
    """Generate a configuration template JSON file."""
    Path(output).write_text(json.dumps(config_template(), indent=2) + "\n")
    click.echo(f"Configuration template written to {output}")
    click.echo("Edit the file, then run: native-bindgen run --config " + output)


@main.command("check-env")
@click.option("--config", "config_file", type=click.Path(exists=True), default=None)
def check_env(config_file: str | None) -> None:
    """Check host platform, git, CMake and the MSVC generator."""
    from native_bindgen.pipeline import BindingPipeline

    config = _load(config_file)
    pipeline = BindingPipeline(config)
    try:
        report = pipeline.check_environment()
    except PipelineAborted as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Host: {report.host}")
    for tool, version in report.tool_versions.items():
        click.echo(f"  {tool}: {version}")
    click.echo(f"Generator: {report.generator}")


@main.command("run")
@click.option("--config", "config_file", type=click.Path(exists=True), default=None)
@click.option("--root", default=None, help="Project root holding target/ and external/")
@click.option("--build-type", type=click.Choice(BUILD_TYPES), default=None)
@click.option("--wrapper-policy", type=click.Choice(WRAPPER_POLICIES), default=None)
def run(
    config_file: str | None,
    root: str | None,
    build_type: str | None,
    wrapper_policy: str | None,
) -> None:
    """Run the full pipeline."""
    from native_bindgen.pipeline import BindingPipeline

    config = _load(config_file, root=root, build_type=build_type, wrapper_policy=wrapper_policy)
    pipeline = BindingPipeline(config)
    try:
        result = pipeline.run()
    except PipelineAborted as e:
        click.echo(f"Error: {e}", err=True)
        _echo_summary(pipeline.progress.get_summary())
        sys.exit(1)

    click.echo(f"Bindings written to {result.bindings_path}")
    if result.bindings:
        click.echo(f"  Includes: {result.bindings.include_count}")
        click.echo(f"  Wrappers: {result.bindings.wrapper_count}")
    for label, gathered in (("Libraries", result.libraries), ("Headers", result.headers)):
        if gathered is None:
            continue
        click.echo(f"  {label}: {len(gathered.copied)} copied, {len(gathered.failures)} failed")
        for failure in gathered.failures:
            click.echo(f"    warning: {failure.error}", err=True)
    _echo_summary(result.summary)


@main.command("extract")
@click.argument("header", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Emit JSON instead of text")
def extract(header: str, as_json: bool) -> None:
    """Print the function signatures found in HEADER."""
    from native_bindgen.bindings.extractor import SignatureExtractor
    from native_bindgen.models.headers import HeaderFile

    path = Path(header)
    origin = HeaderFile.from_path(path.resolve(), path.resolve().parent)
    text = path.read_text(encoding="utf-8", errors="replace")
    signatures = SignatureExtractor().extract(text, origin=origin)

    if as_json:
        payload = [
            {
                "template_prefix": s.template_prefix,
                "return_type": s.return_type,
                "name": s.name,
                "parameters": s.parameters,
            }
            for s in signatures
        ]
        click.echo(json.dumps(payload, indent=2))
        return

    for s in signatures:
        prefix = f"{s.template_prefix} " if s.template_prefix else ""
        params = s.parameters if s.parameters is not None else "..."
        click.echo(f"  {prefix}{s.return_type} {s.name}({params})")
    click.echo(f"{len(signatures)} signature(s)")


@main.command("generate")
@click.argument("include_dir", type=click.Path(exists=True, file_okay=False))
@click.option("-o", "--output", default="bindings.cpp", help="Generated file path")
@click.option("--wrapper-policy", type=click.Choice(WRAPPER_POLICIES), default="all")
@click.option("--internal-prefix", default="LOW_LEVEL_ALLOC", help="Names to leave unwrapped")
def generate(include_dir: str, output: str, wrapper_policy: str, internal_prefix: str) -> None:
    """Generate the binding file from an existing INCLUDE_DIR."""
    from native_bindgen.bindings.emitter import BindingEmitter

    emitter = BindingEmitter(internal_prefix=internal_prefix, wrapper_policy=wrapper_policy)
    try:
        report = emitter.emit(include_dir, output)
    except EmissionError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Generated wrapper file at: {report.path}")
    click.echo(f"  Includes: {report.include_count}")
    click.echo(f"  Wrappers: {report.wrapper_count}")


if __name__ == "__main__":
    main()
