from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from flakeref.core.model import CommandKind, CommandSpec


DEFAULT_COMMANDS: dict[CommandKind, CommandSpec] = {
    CommandKind.BUILD: CommandSpec(segment="packages"),
    CommandKind.EVAL: CommandSpec(segment="packages"),
    CommandKind.RUN: CommandSpec(segment="apps", fallback="packages"),
    CommandKind.DEVELOP: CommandSpec(segment="devShells", fallback="packages"),
    CommandKind.NIXOS_REBUILD: CommandSpec(segment="nixosConfigurations", per_system=False),
    # repl loads the flake as-is; nothing to qualify.
    CommandKind.REPL: CommandSpec(segment=None, per_system=False),
}


class CommandConfigError(ValueError):
    pass


def load_command_file(path: str | Path) -> dict[CommandKind, CommandSpec]:
    """Load command overrides from a YAML file.

    Format:
      <command>:
        segment: <top-level attribute>
        fallback: <top-level attribute or null>

    Only existing command kinds may be overridden, and repl stays unexpanded.
    Keys left out keep their default value.
    """
    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise CommandConfigError("command file must be a mapping of command -> settings")

    out: dict[CommandKind, CommandSpec] = {}
    for k, v in raw.items():
        try:
            kind = CommandKind(k)
        except ValueError:
            choices = ", ".join(c.value for c in CommandKind)
            raise CommandConfigError(f"unknown command '{k}' (choose one of: {choices})") from None
        if kind is CommandKind.REPL:
            raise CommandConfigError("command 'repl' cannot be configured")
        if not isinstance(v, dict):
            raise CommandConfigError(f"command '{k}' settings must be a mapping")

        base = DEFAULT_COMMANDS[kind]
        segment = _segment(v, "segment", base.segment, k)
        fallback = _segment(v, "fallback", base.fallback, k)
        if segment is None:
            raise CommandConfigError(f"command '{k}' needs a segment")
        out[kind] = CommandSpec(segment=segment, fallback=fallback, per_system=base.per_system)
    return out


def merged_commands(
    overrides: dict[CommandKind, CommandSpec] | None = None,
) -> dict[CommandKind, CommandSpec]:
    merged = dict(DEFAULT_COMMANDS)
    if overrides:
        merged.update(overrides)
    return merged


def load_and_merge(command_file: str | None) -> dict[CommandKind, CommandSpec]:
    if not command_file:
        return merged_commands()
    return merged_commands(load_command_file(command_file))


def _segment(settings: dict[str, Any], key: str, default: str | None, command: str) -> str | None:
    if key not in settings:
        return default
    value = settings[key]
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise CommandConfigError(f"command '{command}' {key} must be a non-empty string")
    return value.strip()
