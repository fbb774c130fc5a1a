from flakeref.core import config


def test_system_override(monkeypatch):
    monkeypatch.setenv("FLAKEREF_SYSTEM", "riscv64-linux")
    assert config.default_system() == "riscv64-linux"


def test_system_falls_back_to_host(monkeypatch):
    monkeypatch.delenv("FLAKEREF_SYSTEM", raising=False)
    assert config.default_system() == config.host_system()


def test_host_system_normalizes_machine(monkeypatch):
    monkeypatch.setattr(config.platform, "machine", lambda: "arm64")
    monkeypatch.setattr(config.sys, "platform", "darwin")
    assert config.host_system() == "aarch64-darwin"

    monkeypatch.setattr(config.platform, "machine", lambda: "AMD64")
    monkeypatch.setattr(config.sys, "platform", "linux")
    assert config.host_system() == "x86_64-linux"


def test_registry_file_from_env(monkeypatch):
    monkeypatch.setenv("FLAKEREF_REGISTRY", " examples/registry.yaml ")
    assert config.default_registry_file() == "examples/registry.yaml"
    monkeypatch.setenv("FLAKEREF_REGISTRY", "")
    assert config.default_registry_file() is None
