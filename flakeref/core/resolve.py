from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from flakeref.core.expand.expand_attr import expand_reference
from flakeref.core.lookup.lookup_outputs import resolve_candidates
from flakeref.core.model import CommandKind, CommandSpec, Expansion, FlakeRef, Resolution
from flakeref.core.parse.parse_ref import parse_reference
from flakeref.core.registry.registry import Registry, resolve_indirect

log = logging.getLogger(__name__)


def resolve_installable(
    raw: str,
    *,
    command: CommandKind,
    system: str,
    outputs: Mapping[str, Any],
    registry: Registry,
    attr: Optional[str] = None,
    commands: dict[CommandKind, CommandSpec] | None = None,
) -> tuple[FlakeRef, Expansion, Resolution]:
    """Parse, resolve through the registry, expand, and look up an installable.

    `outputs` is the evaluated output set of the flake the locator names.
    """

    ref = parse_reference(raw, attr)
    locator = resolve_indirect(ref.locator, registry)
    expansion = expand_reference(ref, command, system, commands=commands)
    attr_path, value = resolve_candidates(outputs, expansion)

    used_fallback = attr_path == expansion.fallback
    if attr_path != expansion.primary:
        log.info("%s: using %s", raw, ".".join(attr_path))

    return ref, expansion, Resolution(
        locator=locator,
        attr_path=attr_path,
        value=value,
        used_fallback=used_fallback,
    )
