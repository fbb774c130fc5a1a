from __future__ import annotations

import os
import platform
import sys


SYSTEM_ENV = "FLAKEREF_SYSTEM"
REGISTRY_ENV = "FLAKEREF_REGISTRY"

_MACHINE_ALIASES = {
    "amd64": "x86_64",
    "x64": "x86_64",
    "arm64": "aarch64",
    "i386": "i686",
    "i586": "i686",
}


def host_system() -> str:
    """Return the nix system double of this host, e.g. `x86_64-linux`."""

    machine = platform.machine().lower() or "x86_64"
    machine = _MACHINE_ALIASES.get(machine, machine)
    kernel = "darwin" if sys.platform == "darwin" else sys.platform.rstrip("0123456789")
    return f"{machine}-{kernel}"


def default_system() -> str:
    """Resolution order:
      1) FLAKEREF_SYSTEM
      2) host_system()
    """

    override = (os.getenv(SYSTEM_ENV, "") or "").strip()
    return override or host_system()


def default_registry_file() -> str | None:
    value = (os.getenv(REGISTRY_ENV, "") or "").strip()
    return value or None
