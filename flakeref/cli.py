from __future__ import annotations

import dataclasses
import json
from typing import Any, NoReturn, Optional

import typer

from flakeref.core.config import default_registry_file, default_system
from flakeref.core.errors import (
    FlakeRefError,
    FlakeRefLoadError,
    FlakeRefValidationError,
    MalformedReference,
)
from flakeref.core.expand.command_config import CommandConfigError, load_and_merge as load_commands
from flakeref.core.expand.expand_attr import expand_reference
from flakeref.core.logging import configure_logging
from flakeref.core.lookup.lookup_outputs import load_outputs
from flakeref.core.model import (
    AttributePath,
    CommandKind,
    CommandSpec,
    Expansion,
    FlakeLocator,
    FlakeRef,
)
from flakeref.core.parse.parse_ref import (
    format_attr_path,
    format_locator,
    format_reference,
    parse_reference,
)
from flakeref.core.registry.registry import load_and_merge as load_registry
from flakeref.core.registry.registry import resolve_indirect
from flakeref.core.resolve import resolve_installable

app = typer.Typer(add_completion=False, no_args_is_help=True)

FORMATS = ("text", "json")


@app.callback()
def _callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log expansion decisions to stderr"),
) -> None:
    """Flake reference expander."""
    configure_logging(verbose)


@app.command("parse")
def parse(
    ref: str = typer.Argument(".", help="Flake reference, e.g. .#hello or github:owner/repo#pkg"),
    attr: Optional[str] = typer.Option(None, "--attr", help="Attribute path given separately from REF"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Split a flake reference into locator and attribute path."""
    _check_format(format, "parse")

    try:
        parsed = parse_reference(ref, attr)
    except MalformedReference as e:
        _fail("parse", format, [e], exit_code=2)

    if format == "json":
        _emit_json("parse", reference=_ref_to_dict(parsed))
        return

    typer.echo(f"locator: {parsed.locator.kind} {format_locator(parsed.locator)}")
    typer.echo(f"attr_path: {format_attr_path(parsed.attr_path) or '<empty>'}")


@app.command("expand")
def expand(
    ref: str = typer.Argument(".", help="Flake reference, e.g. .#hello"),
    command: str = typer.Option(..., "--command", "-c", help="build|eval|run|develop|nixos-rebuild|repl"),
    system: Optional[str] = typer.Option(None, "--system", help="System double (default: FLAKEREF_SYSTEM or host)"),
    attr: Optional[str] = typer.Option(None, "--attr", help="Attribute path given separately from REF"),
    command_file: Optional[str] = typer.Option(
        None, "--command-file", help="Optional YAML file overriding command top-level attributes"
    ),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Print the fully qualified attribute paths a command would try, in order."""
    _check_format(format, "expand")
    kind = _command_kind(command, "expand", format)
    commands = _commands(command_file, "expand", format)
    use_system = system or default_system()

    try:
        parsed = parse_reference(ref, attr)
    except MalformedReference as e:
        _fail("expand", format, [e], exit_code=2)

    expansion = expand_reference(parsed, kind, use_system, commands=commands)
    installables = [
        format_reference(FlakeRef(locator=parsed.locator, attr_path=c)) for c in expansion.candidates
    ]

    if format == "json":
        _emit_json(
            "expand",
            reference=_ref_to_dict(parsed),
            expand_command=kind.value,
            system=use_system,
            candidates=[list(c) for c in expansion.candidates],
            installables=installables,
            as_typed=list(expansion.as_typed) if expansion.as_typed is not None else None,
        )
        return

    for candidate, installable in zip(expansion.candidates, installables):
        typer.echo(f"{installable}{_candidate_note(expansion, candidate, '  ')}")


@app.command("resolve")
def resolve(
    ref: str = typer.Argument(".", help="Flake reference, e.g. nixpkgs#hello"),
    command: str = typer.Option(..., "--command", "-c", help="build|eval|run|develop|nixos-rebuild|repl"),
    outputs: str = typer.Option(..., "--outputs", help="YAML/JSON file with the flake's evaluated outputs"),
    system: Optional[str] = typer.Option(None, "--system", help="System double (default: FLAKEREF_SYSTEM or host)"),
    attr: Optional[str] = typer.Option(None, "--attr", help="Attribute path given separately from REF"),
    registry_file: Optional[str] = typer.Option(
        None, "--registry-file", help="YAML/JSON registry to add/override entries (default: FLAKEREF_REGISTRY)"
    ),
    command_file: Optional[str] = typer.Option(
        None, "--command-file", help="Optional YAML file overriding command top-level attributes"
    ),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Resolve a reference against a flake's outputs, falling back where the command allows."""
    _check_format(format, "resolve")
    kind = _command_kind(command, "resolve", format)
    commands = _commands(command_file, "resolve", format)
    use_system = system or default_system()

    try:
        registry = load_registry(registry_file or default_registry_file())
        outputs_map = load_outputs(outputs)
    except FlakeRefLoadError as e:
        _fail("resolve", format, [e], exit_code=1)

    try:
        parsed, expansion, resolution = resolve_installable(
            ref,
            command=kind,
            system=use_system,
            outputs=outputs_map,
            registry=registry,
            attr=attr,
            commands=commands,
        )
    except FlakeRefError as e:
        _fail("resolve", format, [e], exit_code=2)

    installable = format_reference(FlakeRef(locator=resolution.locator, attr_path=resolution.attr_path))

    if format == "json":
        _emit_json(
            "resolve",
            reference=_ref_to_dict(parsed),
            expand_command=kind.value,
            system=use_system,
            candidates=[list(c) for c in expansion.candidates],
            locator=_locator_to_dict(resolution.locator),
            attr_path=list(resolution.attr_path),
            used_fallback=resolution.used_fallback,
            installable=installable,
        )
        return

    typer.echo(f"OK: {installable}{_candidate_note(expansion, resolution.attr_path, ' ')}")


@app.command("registry")
def registry(
    name: Optional[str] = typer.Argument(None, help="Resolve this indirect name instead of listing"),
    registry_file: Optional[str] = typer.Option(
        None, "--registry-file", help="YAML/JSON registry to add/override entries (default: FLAKEREF_REGISTRY)"
    ),
) -> None:
    """List registry entries, or resolve one indirect reference."""
    try:
        reg = load_registry(registry_file or default_registry_file())
    except FlakeRefLoadError as e:
        _print_errors([e])
        raise typer.Exit(code=1)

    if name is None:
        typer.echo("Registry:")
        for entry in reg.names():
            typer.echo(f"- {entry}: {format_locator(reg.entries[entry])}")
        return

    try:
        locator = resolve_indirect(parse_reference(name).locator, reg)
    except FlakeRefError as e:
        _print_errors([e])
        raise typer.Exit(code=2)
    typer.echo(format_locator(locator))


@app.command("commands")
def commands(
    command_file: Optional[str] = typer.Option(
        None, "--command-file", help="Optional YAML file overriding command top-level attributes"
    ),
) -> None:
    """List command kinds and the top-level attributes they expand into."""
    table = _commands(command_file, "commands", "text")

    typer.echo("Commands:")
    for kind in CommandKind:
        spec = table[kind]
        if spec.segment is None:
            typer.echo(f"- {kind.value}: (no expansion)")
            continue
        shape = f"{spec.segment}.<system>.<attr>" if spec.per_system else f"{spec.segment}.<attr>"
        if spec.fallback:
            shape += f", then {spec.fallback}"
        typer.echo(f"- {kind.value}: {shape}")


def _check_format(format: str, command: str) -> None:
    if format not in FORMATS:
        err = FlakeRefValidationError(
            code="E_UNKNOWN_FORMAT",
            message=f"unknown format: {format} (choose one of: {', '.join(FORMATS)})",
            ref=None,
            path="format",
        )
        _print_errors([err])
        raise typer.Exit(code=2)


def _command_kind(command: str, cli_command: str, format: str) -> CommandKind:
    try:
        return CommandKind(command.lower())
    except ValueError:
        choices = ", ".join(k.value for k in CommandKind)
        err = FlakeRefValidationError(
            code="E_UNKNOWN_COMMAND",
            message=f"unknown command: {command} (choose one of: {choices})",
            ref=None,
            path="command",
        )
        _fail(cli_command, format, [err], exit_code=2)


def _commands(command_file: Optional[str], cli_command: str, format: str) -> dict[CommandKind, CommandSpec]:
    try:
        return load_commands(command_file)
    except FileNotFoundError:
        err = FlakeRefLoadError(
            code="E_COMMAND_FILE_NOT_FOUND",
            message=f"command file not found: {command_file}",
            ref=None,
            path="command_file",
        )
        _fail(cli_command, format, [err], exit_code=1)
    except CommandConfigError as e:
        err = FlakeRefValidationError(
            code="E_COMMAND_FILE_INVALID",
            message=str(e),
            ref=None,
            path="command_file",
        )
        _fail(cli_command, format, [err], exit_code=2)


def _candidate_note(expansion: Expansion, candidate: AttributePath, sep: str) -> str:
    if candidate == expansion.primary:
        return ""
    if candidate == expansion.fallback:
        return f"{sep}(fallback)"
    if candidate == expansion.as_typed:
        return f"{sep}(as typed)"
    return ""


def _locator_to_dict(locator: FlakeLocator) -> dict[str, Any]:
    out: dict[str, Any] = {"kind": locator.kind, "canonical": format_locator(locator)}
    out.update(dataclasses.asdict(locator))
    return out


def _ref_to_dict(ref: FlakeRef) -> dict[str, Any]:
    return {
        "locator": _locator_to_dict(ref.locator),
        "attr_path": list(ref.attr_path),
        "canonical": format_reference(ref),
    }


def _to_item(e: FlakeRefError) -> dict[str, Any]:
    if isinstance(e, FlakeRefLoadError):
        source = "load"
    elif isinstance(e, FlakeRefValidationError):
        source = "validate"
    else:
        source = "resolve"
    return {
        "code": e.code,
        "message": e.message,
        "ref": e.ref,
        "path": e.path,
        "severity": "error",
        "source": source,
    }


def _emit_json(command: str, **fields: Any) -> None:
    payload = {
        "tool": "flakeref",
        "command": command,
        "ok": True,
        "error_count": 0,
        "errors": [],
    }
    payload.update(fields)
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))


def _fail(command: str, format: str, errors: list[FlakeRefError], *, exit_code: int) -> NoReturn:
    if format == "json":
        payload = {
            "tool": "flakeref",
            "command": command,
            "ok": False,
            "error_count": len(errors),
            "errors": [_to_item(e) for e in errors],
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
    else:
        _print_errors(errors)
    raise typer.Exit(code=exit_code)


def _print_errors(errors: list[FlakeRefError]) -> None:
    errors_sorted = sorted(errors, key=lambda e: (e.ref or "", e.path or "", e.code))
    for e in errors_sorted:
        typer.echo(str(e), err=True)


def main() -> None:
    app(prog_name="flakeref")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
