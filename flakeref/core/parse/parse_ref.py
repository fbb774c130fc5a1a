from __future__ import annotations

import logging
import re
from typing import Optional
from urllib.parse import parse_qsl, quote

from flakeref.core.errors import MalformedReference
from flakeref.core.model import (
    AbsolutePath,
    AttributePath,
    CurrentDirectory,
    FlakeLocator,
    FlakeRef,
    GitHubReference,
    HomeAnchoredPath,
    IndirectReference,
    RelativePath,
)

log = logging.getLogger(__name__)


# Bare indirect references: <flake-id>[/<ref>]. The ref may not contain a slash
# here; `flake:` references accept slashes in the ref.
_FLAKE_ID = r"[a-zA-Z][a-zA-Z0-9_-]*"
_REF = r"[a-zA-Z0-9@][a-zA-Z0-9_.@+-]*"
_REF_WITH_SLASHES = r"[a-zA-Z0-9@][a-zA-Z0-9_./@+-]*"

_BARE_INDIRECT_RE = re.compile(rf"(?P<name>{_FLAKE_ID})(?:/(?P<ref>{_REF}))?")
_FLAKE_INDIRECT_RE = re.compile(rf"(?P<name>{_FLAKE_ID})(?:/(?P<ref>{_REF_WITH_SLASHES}))?")
_REF_RE = re.compile(_REF)
_SCHEME_RE = re.compile(r"[a-zA-Z][a-zA-Z0-9+.-]*:")

_GITHUB_QUERY_KEYS = {"ref", "rev"}


def split_reference(raw: str) -> tuple[str, str]:
    """Split a flake reference at its first `#`.

    Returns (locator, fragment). The fragment is "" when there is no `#`;
    an empty locator half means the current directory.
    """

    locator, sep, fragment = raw.partition("#")
    if not sep:
        fragment = ""
    if not locator:
        locator = "."
    return locator, fragment


def parse_locator(text: str, *, ref: Optional[str] = None) -> FlakeLocator:
    ctx = ref if ref is not None else text

    if text in ("", "."):
        return CurrentDirectory()

    if text.startswith("path:"):
        path = text[len("path:") :]
        if not path:
            raise MalformedReference(
                code="E_MALFORMED_REFERENCE",
                message="path: reference needs a path",
                ref=ctx,
                path="locator",
            )
        return _classify_path(path)

    if text.startswith("github:"):
        return _parse_github(text[len("github:") :], ctx)

    if text.startswith("flake:"):
        m = _FLAKE_INDIRECT_RE.fullmatch(text[len("flake:") :])
        if m is None:
            raise MalformedReference(
                code="E_MALFORMED_REFERENCE",
                message=f"invalid indirect flake reference: {text}",
                ref=ctx,
                path="locator",
            )
        return IndirectReference(name=m.group("name"), ref=m.group("ref"))

    if _SCHEME_RE.match(text):
        scheme = text.split(":", 1)[0]
        raise MalformedReference(
            code="E_UNSUPPORTED_SCHEME",
            message=f"unsupported locator scheme: {scheme} (choose one of: path, github, flake)",
            ref=ctx,
            path="locator",
        )

    if text.startswith("/") or text == "~" or text.startswith("~/"):
        return _classify_path(text)
    if text == ".." or text.startswith(("./", "../")):
        return RelativePath(path=text)

    m = _BARE_INDIRECT_RE.fullmatch(text)
    if m is not None:
        return IndirectReference(name=m.group("name"), ref=m.group("ref"))

    if "/" in text and not text.startswith("~"):
        return RelativePath(path=text)

    raise MalformedReference(
        code="E_MALFORMED_REFERENCE",
        message=f"cannot parse flake locator: {text}",
        ref=ctx,
        path="locator",
    )


def parse_attr_path(text: str, *, ref: Optional[str] = None) -> AttributePath:
    """Parse a dot-separated attribute path.

    Segments may be double-quoted to carry `.` or `#`; inside quotes a
    backslash escapes the next character.
    """

    ctx = ref if ref is not None else text
    if text == "":
        return ()

    def _err(code: str, message: str) -> MalformedReference:
        return MalformedReference(code=code, message=message, ref=ctx, path="attr_path")

    segments: list[str] = []
    buf: list[str] = []
    quoted = False
    was_quoted = False
    escaped = False

    for c in text:
        if quoted:
            if escaped:
                buf.append(c)
                escaped = False
            elif c == "\\":
                escaped = True
            elif c == '"':
                quoted = False
            else:
                buf.append(c)
            continue

        if c == '"':
            if buf or was_quoted:
                raise _err("E_MALFORMED_ATTR_PATH", "quote must start an attribute segment")
            quoted = True
            was_quoted = True
        elif c == ".":
            if not buf and not was_quoted:
                raise _err("E_MALFORMED_ATTR_PATH", f"empty attribute segment in: {text}")
            segments.append("".join(buf))
            buf = []
            was_quoted = False
        elif c == "#":
            raise _err(
                "E_MALFORMED_REFERENCE",
                "reference contains more than one '#' (quote the attribute name to use '#')",
            )
        else:
            if was_quoted:
                raise _err("E_MALFORMED_ATTR_PATH", "unexpected text after quoted segment")
            buf.append(c)

    if quoted:
        raise _err("E_MALFORMED_ATTR_PATH", "unterminated quote in attribute path")
    if not buf and not was_quoted:
        raise _err("E_MALFORMED_ATTR_PATH", f"empty attribute segment in: {text}")
    segments.append("".join(buf))
    return tuple(segments)


def parse_reference(raw: str, attr: Optional[str] = None) -> FlakeRef:
    """Parse `<locator>[#<attr-path>]`.

    `attr` is an attribute path given separately (e.g. `--attr`); it may not be
    combined with a non-empty `#` fragment.
    """

    locator_text, fragment = split_reference(raw)
    locator = parse_locator(locator_text, ref=raw)

    if attr is not None:
        if fragment:
            raise MalformedReference(
                code="E_AMBIGUOUS_ATTR_PATH",
                message="attribute path given both after '#' and explicitly",
                ref=raw,
                path="attr_path",
            )
        attr_path = parse_attr_path(attr, ref=raw)
    else:
        attr_path = parse_attr_path(fragment, ref=raw)

    log.debug("parsed %r -> %s %s", raw, locator, attr_path)
    return FlakeRef(locator=locator, attr_path=attr_path)


def format_attr_path(attr_path: AttributePath) -> str:
    return ".".join(_format_segment(s) for s in attr_path)


def format_locator(locator: FlakeLocator) -> str:
    """Render a locator as a string that parses back to an equal locator."""

    if isinstance(locator, CurrentDirectory):
        return "."
    if isinstance(locator, (AbsolutePath, HomeAnchoredPath)):
        return locator.path
    if isinstance(locator, RelativePath):
        p = locator.path
        if p == ".." or p.startswith(("./", "../")):
            return p
        if (
            "/" in p
            and not p.startswith("~")
            and _SCHEME_RE.match(p) is None
            and _BARE_INDIRECT_RE.fullmatch(p) is None
        ):
            return p
        return f"path:{p}"
    if isinstance(locator, GitHubReference):
        base = f"github:{locator.owner}/{locator.repo}"
        if locator.ref is None:
            return base
        if _REF_RE.fullmatch(locator.ref) is None:
            return f"{base}?ref={quote(locator.ref, safe='/')}"
        return f"{base}/{locator.ref}"
    if isinstance(locator, IndirectReference):
        if locator.ref is None:
            return locator.name
        if "/" in locator.ref:
            return f"flake:{locator.name}/{locator.ref}"
        return f"{locator.name}/{locator.ref}"
    raise TypeError(f"unknown locator: {locator!r}")


def format_reference(ref: FlakeRef) -> str:
    loc = format_locator(ref.locator)
    if not ref.attr_path:
        return loc
    return f"{loc}#{format_attr_path(ref.attr_path)}"


def _format_segment(segment: str) -> str:
    if segment and not re.search(r'[.#"\\\s]', segment):
        return segment
    escaped = segment.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _classify_path(path: str) -> FlakeLocator:
    if path == ".":
        return CurrentDirectory()
    if path.startswith("/"):
        return AbsolutePath(path=path)
    if path == "~" or path.startswith("~/"):
        return HomeAnchoredPath(path=path)
    return RelativePath(path=path)


def _parse_github(rest: str, ctx: str) -> GitHubReference:
    def _err(message: str) -> MalformedReference:
        return MalformedReference(
            code="E_MALFORMED_REFERENCE", message=message, ref=ctx, path="locator"
        )

    path_part, _, query = rest.partition("?")
    parts = path_part.split("/")
    if len(parts) not in (2, 3) or not all(parts):
        raise _err(f"github reference must be github:<owner>/<repo>[/<ref>], got: github:{rest}")

    owner, repo = parts[0], parts[1]
    ref = parts[2] if len(parts) == 3 else None

    if query:
        for key, value in parse_qsl(query, keep_blank_values=True):
            if key not in _GITHUB_QUERY_KEYS:
                raise _err(f"unsupported github query parameter: {key}")
            if not value:
                raise _err(f"github query parameter {key} needs a value")
            if ref is not None:
                raise _err("github reference names its ref more than once")
            ref = value

    return GitHubReference(owner=owner, repo=repo, ref=ref)
