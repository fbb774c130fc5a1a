from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from flakeref.core.errors import FlakeRefLoadError


def load_document(path: str | Path) -> Any:
    """Load a YAML/JSON file.

    Returns the parsed document as-is; callers own shape checking.
    """

    p = Path(path)
    if not p.exists():
        raise FlakeRefLoadError(
            code="E_FILE_NOT_FOUND",
            message="file does not exist",
            ref=str(p),
        )

    suffix = p.suffix.lower()
    if suffix not in {".yaml", ".yml", ".json"}:
        raise FlakeRefLoadError(
            code="E_UNSUPPORTED_FORMAT",
            message="supported formats are .yaml/.yml and .json",
            ref=str(p),
        )

    try:
        raw_text = p.read_text(encoding="utf-8")
    except Exception as e:
        raise FlakeRefLoadError(code="E_FILE_READ", message=str(e), ref=str(p)) from e

    try:
        if suffix == ".json":
            return json.loads(raw_text)
        return yaml.safe_load(raw_text)
    except Exception as e:
        code = "E_JSON_PARSE" if suffix == ".json" else "E_YAML_PARSE"
        raise FlakeRefLoadError(code=code, message=str(e), ref=str(p)) from e
