import json

from typer.testing import CliRunner

from flakeref.cli import app

runner = CliRunner()


def test_cli_parse_text():
    r = runner.invoke(app, ["parse", "github:NixOS/nixpkgs/nixos-23.11#hello"])
    assert r.exit_code == 0, r.output
    assert "locator: github github:NixOS/nixpkgs/nixos-23.11" in r.stdout
    assert "attr_path: hello" in r.stdout


def test_cli_parse_json():
    r = runner.invoke(app, ["parse", ".#packages.x86_64-linux.default", "--format", "json"])
    assert r.exit_code == 0, r.output
    payload = json.loads(r.stdout)
    assert payload["command"] == "parse"
    assert payload["ok"] is True
    assert payload["reference"]["locator"]["kind"] == "current-directory"
    assert payload["reference"]["attr_path"] == ["packages", "x86_64-linux", "default"]


def test_cli_parse_malformed_json():
    r = runner.invoke(app, ["parse", ".#a#b", "--format", "json"])
    assert r.exit_code == 2
    payload = json.loads(r.stdout)
    assert payload["ok"] is False
    assert payload["errors"][0]["code"] == "E_MALFORMED_REFERENCE"


def test_cli_parse_unknown_format():
    r = runner.invoke(app, ["parse", ".", "--format", "xml"])
    assert r.exit_code == 2
    assert "E_UNKNOWN_FORMAT" in r.output
