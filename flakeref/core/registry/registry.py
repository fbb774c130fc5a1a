from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import Any, Optional

from flakeref.core.errors import FlakeRefLoadError, MalformedReference, UnknownRegistryEntry
from flakeref.core.io.load_file import load_document
from flakeref.core.model import (
    FlakeLocator,
    GitHubReference,
    IndirectReference,
)
from flakeref.core.parse.parse_ref import parse_locator

log = logging.getLogger(__name__)


# Stand-in for the global registry, which is fetched over the network by nix.
DEFAULT_REGISTRY: dict[str, str] = {
    "nixpkgs": "github:NixOS/nixpkgs/nixpkgs-unstable",
    "flake-utils": "github:numtide/flake-utils",
    "home-manager": "github:nix-community/home-manager",
    "nix-darwin": "github:LnL7/nix-darwin",
}

MAX_REGISTRY_HOPS = 16


class Registry:
    """Mapping of indirect flake names to locators."""

    def __init__(self, entries: dict[str, FlakeLocator] | None = None) -> None:
        self.entries: dict[str, FlakeLocator] = dict(entries or {})

    @classmethod
    def from_strings(cls, entries: dict[str, str], *, source: str | None = None) -> "Registry":
        parsed: dict[str, FlakeLocator] = {}
        for name, target in entries.items():
            parsed[name] = _parse_target(name, target, source)
        return cls(parsed)

    def lookup(self, name: str) -> Optional[FlakeLocator]:
        return self.entries.get(name)

    def names(self) -> list[str]:
        return sorted(self.entries)

    def merged(self, overrides: "Registry | None") -> "Registry":
        """Return a copy with `overrides` replacing same-named entries."""
        merged = dict(self.entries)
        if overrides:
            merged.update(overrides.entries)
        return Registry(merged)

    def __contains__(self, name: object) -> bool:
        return name in self.entries

    def __len__(self) -> int:
        return len(self.entries)


def default_registry() -> Registry:
    return Registry.from_strings(DEFAULT_REGISTRY)


def load_registry_file(path: str | Path) -> Registry:
    """Load registry entries from a YAML/JSON file.

    Two layouts are accepted:

      nixpkgs: "github:NixOS/nixpkgs/nixos-23.11"     # flat name -> locator

    or the registry.json layout written by `nix registry`:

      {"version": 2, "flakes": [{"from": {"type": "indirect", "id": "nixpkgs"},
                                 "to": {"type": "github", "owner": "NixOS", "repo": "nixpkgs"}}]}
    """

    p = Path(path)
    data = load_document(p)

    if data is None:
        return Registry()
    if not isinstance(data, dict):
        raise FlakeRefLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="registry file must be a mapping/object",
            ref=str(p),
        )

    if "flakes" in data:
        return _from_nix_registry(data, str(p))

    entries: dict[str, str] = {}
    for name, target in data.items():
        if not isinstance(name, str) or not name.strip():
            raise FlakeRefLoadError(
                code="E_INVALID_TOP_LEVEL",
                message="registry names must be non-empty strings",
                ref=str(p),
            )
        if not isinstance(target, str):
            raise FlakeRefLoadError(
                code="E_INVALID_TOP_LEVEL",
                message=f"registry entry '{name}' must be a locator string",
                ref=str(p),
                path=name,
            )
        entries[name.strip()] = target
    return Registry.from_strings(entries, source=str(p))


def load_and_merge(registry_file: str | None) -> Registry:
    base = default_registry()
    if not registry_file:
        return base
    return base.merged(load_registry_file(registry_file))


def resolve_indirect(locator: FlakeLocator, registry: Registry) -> FlakeLocator:
    """Resolve an indirect reference through the registry.

    Other locators are returned as-is. Entries may point at further indirect
    names; those are followed. A ref on the indirect reference replaces the
    ref of the entry it resolves to.
    """

    if not isinstance(locator, IndirectReference):
        return locator

    seen: list[str] = []
    current: FlakeLocator = locator
    ref = locator.ref
    while isinstance(current, IndirectReference):
        name = current.name
        if name in seen:
            raise UnknownRegistryEntry(
                code="E_REGISTRY_CYCLE",
                message="registry entries form a cycle: " + " -> ".join(seen + [name]),
                ref=locator.name,
                path="registry",
            )
        if len(seen) >= MAX_REGISTRY_HOPS:
            raise UnknownRegistryEntry(
                code="E_REGISTRY_CYCLE",
                message=f"more than {MAX_REGISTRY_HOPS} registry hops resolving {locator.name}",
                ref=locator.name,
                path="registry",
            )
        seen.append(name)

        target = registry.lookup(name)
        if target is None:
            raise UnknownRegistryEntry(
                code="E_UNKNOWN_REGISTRY_ENTRY",
                message=f"no registry entry for flake '{name}'",
                ref=locator.name,
                path="registry",
            )
        log.debug("registry: %s -> %s", name, target)
        if ref is None and isinstance(target, IndirectReference):
            ref = target.ref
        current = target

    if ref is not None and isinstance(current, GitHubReference):
        current = dataclasses.replace(current, ref=ref)
    return current


def _parse_target(
    name: str, target: str, source: str | None, *, path: str | None = None
) -> FlakeLocator:
    try:
        return parse_locator(target)
    except MalformedReference as e:
        raise FlakeRefLoadError(
            code="E_INVALID_REGISTRY_ENTRY",
            message=f"registry entry '{name}': {e.message}",
            ref=source,
            path=path or name,
        ) from e


def _from_nix_registry(data: dict[str, Any], source: str) -> Registry:
    flakes = data.get("flakes")
    if not isinstance(flakes, list):
        raise FlakeRefLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="flakes must be an array",
            ref=source,
            path="flakes",
        )

    entries: dict[str, FlakeLocator] = {}
    for i, item in enumerate(flakes):
        item_path = f"flakes[{i}]"
        frm = item.get("from") if isinstance(item, dict) else None
        to = item.get("to") if isinstance(item, dict) else None
        if not isinstance(frm, dict) or not isinstance(to, dict):
            raise FlakeRefLoadError(
                code="E_INVALID_REGISTRY_ENTRY",
                message="registry entry needs 'from' and 'to' objects",
                ref=source,
                path=item_path,
            )
        if frm.get("type") != "indirect" or not isinstance(frm.get("id"), str):
            raise FlakeRefLoadError(
                code="E_INVALID_REGISTRY_ENTRY",
                message="'from' must be an indirect reference with an id",
                ref=source,
                path=f"{item_path}.from",
            )
        entries[frm["id"]] = _locator_from_attrs(frm["id"], to, source, f"{item_path}.to")
    return Registry(entries)


def _locator_from_attrs(name: str, attrs: dict[str, Any], source: str, path: str) -> FlakeLocator:
    typ = attrs.get("type")
    ref = attrs.get("ref") or attrs.get("rev")

    if typ == "github":
        owner, repo = attrs.get("owner"), attrs.get("repo")
        if not isinstance(owner, str) or not isinstance(repo, str) or not owner or not repo:
            raise FlakeRefLoadError(
                code="E_INVALID_REGISTRY_ENTRY",
                message="github entry needs owner and repo",
                ref=source,
                path=path,
            )
        return GitHubReference(owner=owner, repo=repo, ref=ref)
    if typ == "indirect" and isinstance(attrs.get("id"), str):
        return IndirectReference(name=attrs["id"], ref=ref)
    if typ == "path" and isinstance(attrs.get("path"), str):
        return _parse_target(name, f"path:{attrs['path']}", source, path=path)

    raise FlakeRefLoadError(
        code="E_INVALID_REGISTRY_ENTRY",
        message=f"unsupported registry target type: {typ}",
        ref=source,
        path=path,
    )
