from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class FlakeRefError(Exception):
    """Base error envelope. Prefer returning/printing these rather than raising raw exceptions."""

    code: str
    message: str
    ref: Optional[str] = None
    path: Optional[str] = None

    def __str__(self) -> str:
        parts: list[str] = []
        if self.ref:
            parts.append(self.ref)
        if self.path:
            parts.append(self.path)
        loc = ":".join(parts) if parts else "<flakeref>"
        return f"{loc}: {self.code}: {self.message}"


class FlakeRefLoadError(FlakeRefError):
    pass


class MalformedReference(FlakeRefError):
    pass


class UnknownRegistryEntry(FlakeRefError):
    pass


class AttributeNotFound(FlakeRefError):
    pass


class FlakeRefValidationError(FlakeRefError):
    pass
