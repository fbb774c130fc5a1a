import pytest

from flakeref.core.errors import AttributeNotFound, UnknownRegistryEntry
from flakeref.core.lookup.lookup_outputs import load_outputs
from flakeref.core.model import CommandKind, GitHubReference
from flakeref.core.registry.registry import default_registry
from flakeref.core.resolve import resolve_installable

SYSTEM = "x86_64-linux"


def test_resolve_indirect_reference_with_fallback():
    ref, expansion, res = resolve_installable(
        "nixpkgs#cowsay",
        command=CommandKind.RUN,
        system=SYSTEM,
        outputs=load_outputs("examples/outputs.yaml"),
        registry=default_registry(),
    )
    assert ref.attr_path == ("cowsay",)
    assert expansion.primary == ("apps", SYSTEM, "cowsay")
    assert res.locator == GitHubReference(owner="NixOS", repo="nixpkgs", ref="nixpkgs-unstable")
    assert res.attr_path == ("packages", SYSTEM, "cowsay")
    assert res.used_fallback is True


def test_resolve_nixos_configuration_with_explicit_attr():
    _, _, res = resolve_installable(
        "/etc/nixos",
        attr='"web.example.org"',
        command=CommandKind.NIXOS_REBUILD,
        system=SYSTEM,
        outputs=load_outputs("examples/outputs.yaml"),
        registry=default_registry(),
    )
    assert res.attr_path == ("nixosConfigurations", "web.example.org")
    assert res.value == "nixos-system-web"
    assert res.used_fallback is False


def test_resolve_unknown_registry_name():
    with pytest.raises(UnknownRegistryEntry):
        resolve_installable(
            "nope#hello",
            command=CommandKind.BUILD,
            system=SYSTEM,
            outputs={},
            registry=default_registry(),
        )


def test_resolve_missing_attribute():
    with pytest.raises(AttributeNotFound):
        resolve_installable(
            ".#hello",
            command=CommandKind.BUILD,
            system="aarch64-linux",
            outputs=load_outputs("examples/outputs.yaml"),
            registry=default_registry(),
        )
