from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union


AttributePath = tuple[str, ...]


@dataclass(frozen=True)
class CurrentDirectory:
    kind = "current-directory"


@dataclass(frozen=True)
class RelativePath:
    path: str

    kind = "relative-path"


@dataclass(frozen=True)
class HomeAnchoredPath:
    path: str

    kind = "home-anchored-path"


@dataclass(frozen=True)
class AbsolutePath:
    path: str

    kind = "absolute-path"


@dataclass(frozen=True)
class GitHubReference:
    owner: str
    repo: str
    ref: Optional[str] = None

    kind = "github"


@dataclass(frozen=True)
class IndirectReference:
    name: str
    ref: Optional[str] = None

    kind = "indirect"


FlakeLocator = Union[
    CurrentDirectory,
    RelativePath,
    HomeAnchoredPath,
    AbsolutePath,
    GitHubReference,
    IndirectReference,
]


class CommandKind(str, Enum):
    BUILD = "build"
    EVAL = "eval"
    RUN = "run"
    DEVELOP = "develop"
    NIXOS_REBUILD = "nixos-rebuild"
    REPL = "repl"


@dataclass(frozen=True)
class CommandSpec:
    """How a command kind qualifies a short attribute path."""

    segment: Optional[str]
    fallback: Optional[str] = None
    per_system: bool = True


@dataclass(frozen=True)
class FlakeRef:
    locator: FlakeLocator
    attr_path: AttributePath = ()


@dataclass(frozen=True)
class Expansion:
    command: CommandKind
    system: str
    candidates: tuple[AttributePath, ...]
    has_fallback: bool = False
    # The path exactly as typed, tried last when it already looks qualified.
    as_typed: Optional[AttributePath] = None

    @property
    def primary(self) -> AttributePath:
        return self.candidates[0]

    @property
    def fallback(self) -> Optional[AttributePath]:
        return self.candidates[1] if self.has_fallback else None


@dataclass(frozen=True)
class Resolution:
    locator: FlakeLocator
    attr_path: AttributePath
    value: Any
    used_fallback: bool = False
