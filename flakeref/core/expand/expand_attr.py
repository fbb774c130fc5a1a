from __future__ import annotations

import logging

from flakeref.core.expand.command_config import DEFAULT_COMMANDS
from flakeref.core.model import AttributePath, CommandKind, CommandSpec, Expansion, FlakeRef

log = logging.getLogger(__name__)


DEFAULT_ATTR = "default"


def expand_attr_path(
    attr_path: AttributePath,
    command: CommandKind,
    system: str,
    *,
    commands: dict[CommandKind, CommandSpec] | None = None,
) -> Expansion:
    """Qualify a short attribute path for a command.

    Returns the candidates in the order a consumer should try them:

    - repl: the path unchanged, even when empty.
    - otherwise an empty path means `default`, and the path is prefixed with the
      command's top-level attribute (and `system` for per-system commands).
      Commands with a fallback attribute (run, develop) get a second candidate
      built the same way.

    A path that already looks qualified for the command (e.g.
    `packages.x86_64-linux.hello`) is still prefixed; the path as typed is
    added as the last candidate.
    """

    spec = (commands or DEFAULT_COMMANDS)[command]
    path = tuple(attr_path)

    if command is CommandKind.REPL or spec.segment is None:
        return Expansion(command=command, system=system, candidates=(path,))

    if not path:
        path = (DEFAULT_ATTR,)

    candidates = [_qualify(spec.segment, path, spec, system)]
    if spec.fallback:
        candidates.append(_qualify(spec.fallback, path, spec, system))

    as_typed = None
    if _is_qualified(path, spec, system) and path not in candidates:
        as_typed = path
        candidates.append(path)

    log.debug(
        "%s: expanded %s -> %s",
        command.value,
        ".".join(attr_path) or "<empty>",
        [".".join(c) for c in candidates],
    )
    return Expansion(
        command=command,
        system=system,
        candidates=tuple(candidates),
        has_fallback=bool(spec.fallback),
        as_typed=as_typed,
    )


def expand_reference(
    ref: FlakeRef,
    command: CommandKind,
    system: str,
    *,
    commands: dict[CommandKind, CommandSpec] | None = None,
) -> Expansion:
    return expand_attr_path(ref.attr_path, command, system, commands=commands)


def _qualify(segment: str, path: AttributePath, spec: CommandSpec, system: str) -> AttributePath:
    if spec.per_system:
        return (segment, system) + path
    return (segment,) + path


def _is_qualified(path: AttributePath, spec: CommandSpec, system: str) -> bool:
    tops = {spec.segment, spec.fallback} - {None}
    if path[0] not in tops:
        return False
    if spec.per_system:
        return len(path) >= 3 and path[1] == system
    return len(path) >= 2
