from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

from flakeref.core.errors import AttributeNotFound, FlakeRefLoadError
from flakeref.core.io.load_file import load_document
from flakeref.core.model import AttributePath, Expansion

log = logging.getLogger(__name__)


def load_outputs(path: str) -> dict[str, Any]:
    """Load evaluated flake outputs from a YAML/JSON file.

    The file holds the nested attribute set an evaluator would produce, e.g.
    `packages: {x86_64-linux: {default: ...}}`. Values are not interpreted.
    """

    p = Path(path)
    data = load_document(p)

    if not isinstance(data, dict):
        raise FlakeRefLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a mapping/object",
            ref=str(p),
        )
    return data


def lookup_attr(outputs: Mapping[str, Any], attr_path: AttributePath) -> Any:
    node: Any = outputs
    for i, segment in enumerate(attr_path):
        if not isinstance(node, Mapping) or segment not in node:
            raise AttributeNotFound(
                code="E_ATTRIBUTE_NOT_FOUND",
                message=f"flake does not provide attribute '{'.'.join(attr_path)}'"
                f" (missing '{segment}' at depth {i})",
                path=".".join(attr_path),
            )
        node = node[segment]
    return node


def resolve_candidates(outputs: Mapping[str, Any], expansion: Expansion) -> tuple[AttributePath, Any]:
    """Look up each candidate in order; return the first one present.

    Raises AttributeNotFound naming every candidate tried when none exist.
    """

    tried: list[str] = []
    for candidate in expansion.candidates:
        try:
            value = lookup_attr(outputs, candidate)
        except AttributeNotFound:
            tried.append(".".join(candidate))
            log.debug("lookup: %s not found, trying next candidate", tried[-1])
            continue
        return candidate, value

    raise AttributeNotFound(
        code="E_ATTRIBUTE_NOT_FOUND",
        message="flake does not provide attribute " + " or ".join(f"'{t}'" for t in tried),
        path=tried[0] if tried else None,
    )
