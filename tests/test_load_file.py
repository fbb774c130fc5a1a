from pathlib import Path

import pytest

from flakeref.core.errors import FlakeRefLoadError
from flakeref.core.io.load_file import load_document


def test_load_yaml_document():
    data = load_document("examples/outputs.yaml")
    assert "packages" in data


def test_load_json_document(tmp_path: Path):
    p = tmp_path / "doc.json"
    p.write_text('{"a": [1, 2]}', encoding="utf-8")
    assert load_document(p) == {"a": [1, 2]}


def test_load_missing_file():
    with pytest.raises(FlakeRefLoadError) as exc:
        load_document("examples/does-not-exist.yaml")
    assert exc.value.code == "E_FILE_NOT_FOUND"


def test_load_non_utf8_file(tmp_path: Path):
    p = tmp_path / "doc.yaml"
    p.write_bytes(b"\xff\xfe\xfa")
    with pytest.raises(FlakeRefLoadError) as exc:
        load_document(p)
    assert exc.value.code == "E_FILE_READ"
    assert exc.value.ref == str(p)


def test_load_directory_with_document_suffix(tmp_path: Path):
    p = tmp_path / "doc.yaml"
    p.mkdir()
    with pytest.raises(FlakeRefLoadError) as exc:
        load_document(p)
    assert exc.value.code == "E_FILE_READ"


def test_load_invalid_json(tmp_path: Path):
    p = tmp_path / "doc.json"
    p.write_text("{", encoding="utf-8")
    with pytest.raises(FlakeRefLoadError) as exc:
        load_document(p)
    assert exc.value.code == "E_JSON_PARSE"


def test_load_invalid_yaml(tmp_path: Path):
    p = tmp_path / "doc.yml"
    p.write_text("a: [1, 2\n", encoding="utf-8")
    with pytest.raises(FlakeRefLoadError) as exc:
        load_document(p)
    assert exc.value.code == "E_YAML_PARSE"
