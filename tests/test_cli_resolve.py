import json

from typer.testing import CliRunner

from flakeref.cli import app

runner = CliRunner()

BASE = ["--outputs", "examples/outputs.yaml", "--system", "x86_64-linux"]


def test_cli_resolve_primary(monkeypatch):
    monkeypatch.delenv("FLAKEREF_REGISTRY", raising=False)
    r = runner.invoke(app, ["resolve", ".#hello", "-c", "build", *BASE])
    assert r.exit_code == 0, r.output
    assert r.stdout.strip() == "OK: .#packages.x86_64-linux.hello"


def test_cli_resolve_fallback_through_registry(monkeypatch):
    monkeypatch.delenv("FLAKEREF_REGISTRY", raising=False)
    r = runner.invoke(
        app,
        ["resolve", "nixpkgs#cowsay", "-c", "run", *BASE, "--registry-file", "examples/registry.yaml"],
    )
    assert r.exit_code == 0, r.output
    assert r.stdout.strip() == "OK: github:NixOS/nixpkgs/nixos-23.11#packages.x86_64-linux.cowsay (fallback)"


def test_cli_resolve_json(monkeypatch):
    monkeypatch.setenv("FLAKEREF_REGISTRY", "examples/nix-registry.json")
    r = runner.invoke(app, ["resolve", "np#", "-c", "develop", *BASE, "--format", "json"])
    assert r.exit_code == 0, r.output
    payload = json.loads(r.stdout)
    assert payload["ok"] is True
    assert payload["attr_path"] == ["devShells", "x86_64-linux", "default"]
    assert payload["used_fallback"] is False
    assert payload["locator"]["kind"] == "github"
    assert payload["locator"]["ref"] == "nixos-24.05"


def test_cli_resolve_attribute_not_found(monkeypatch):
    monkeypatch.delenv("FLAKEREF_REGISTRY", raising=False)
    r = runner.invoke(app, ["resolve", ".#nope", "-c", "run", *BASE, "--format", "json"])
    assert r.exit_code == 2
    payload = json.loads(r.stdout)
    assert payload["errors"][0]["code"] == "E_ATTRIBUTE_NOT_FOUND"
    assert "apps.x86_64-linux.nope" in payload["errors"][0]["message"]


def test_cli_resolve_unknown_registry_entry(monkeypatch):
    monkeypatch.delenv("FLAKEREF_REGISTRY", raising=False)
    r = runner.invoke(app, ["resolve", "nope#hello", "-c", "build", *BASE])
    assert r.exit_code == 2
    assert "E_UNKNOWN_REGISTRY_ENTRY" in r.output


def test_cli_resolve_missing_outputs_file(monkeypatch):
    monkeypatch.delenv("FLAKEREF_REGISTRY", raising=False)
    r = runner.invoke(
        app, ["resolve", ".", "-c", "build", "--outputs", "examples/nope.yaml", "--system", "x86_64-linux"]
    )
    assert r.exit_code == 1
    assert "E_FILE_NOT_FOUND" in r.output


def test_cli_resolve_qualified_path_as_typed(monkeypatch):
    monkeypatch.delenv("FLAKEREF_REGISTRY", raising=False)
    r = runner.invoke(app, ["resolve", ".#packages.x86_64-linux.hello", "-c", "build", *BASE])
    assert r.exit_code == 0, r.output
    assert r.stdout.strip() == "OK: .#packages.x86_64-linux.hello (as typed)"


def test_cli_resolve_qualified_run_path_as_typed(monkeypatch):
    monkeypatch.delenv("FLAKEREF_REGISTRY", raising=False)
    r = runner.invoke(app, ["resolve", ".#packages.x86_64-linux.hello", "-c", "run", *BASE, "--format", "json"])
    assert r.exit_code == 0, r.output
    payload = json.loads(r.stdout)
    assert payload["attr_path"] == ["packages", "x86_64-linux", "hello"]
    assert payload["used_fallback"] is False
    assert payload["candidates"][0] == ["apps", "x86_64-linux", "packages", "x86_64-linux", "hello"]


def test_cli_resolve_undecodable_outputs_file(monkeypatch, tmp_path):
    monkeypatch.delenv("FLAKEREF_REGISTRY", raising=False)
    p = tmp_path / "outputs.yaml"
    p.write_bytes(b"\xff\xfe\xfa")
    r = runner.invoke(
        app, ["resolve", ".", "-c", "build", "--outputs", str(p), "--system", "x86_64-linux", "--format", "json"]
    )
    assert r.exit_code == 1
    payload = json.loads(r.stdout)
    assert payload["errors"][0]["code"] == "E_FILE_READ"
    assert payload["errors"][0]["source"] == "load"
