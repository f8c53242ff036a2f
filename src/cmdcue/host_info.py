"""Facts about the machine the commands will run on, for the outgoing prompt."""

from __future__ import annotations

import getpass
import os
import platform
import shutil
import socket
from dataclasses import dataclass, field
from pathlib import Path

PACKAGE_MANAGERS = ("apt", "dnf", "yum", "pacman", "zypper", "apk", "emerge", "brew", "port", "nix", "snap", "flatpak")

_OS_RELEASE_PATH = Path("/etc/os-release")


@dataclass(frozen=True)
class HostInfo:
    username: str
    hostname: str
    cwd: str
    os_name: str
    shell: str = ""
    package_managers: tuple[str, ...] = field(default_factory=tuple)


def _username() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return Path.home().name


def _parse_os_release(text: str) -> dict[str, str]:
    values: dict[str, str] = {}
    for line in text.splitlines():
        if "=" not in line or line.lstrip().startswith("#"):
            continue
        key, value = line.split("=", 1)
        values[key.strip()] = value.strip().strip('"').strip("'")
    return values


def detect_os_name(*, os_release_path: Path = _OS_RELEASE_PATH) -> str:
    system = platform.system()
    if system == "Darwin":
        version = platform.mac_ver()[0]
        return f"macOS {version}".strip()
    if system == "Linux":
        try:
            release = _parse_os_release(os_release_path.read_text(encoding="utf-8", errors="replace"))
        except OSError:
            release = {}
        pretty = release.get("PRETTY_NAME") or release.get("NAME")
        if pretty:
            return pretty
    return platform.platform(terse=True) or system or "an unknown operating system"


def detect_package_managers() -> tuple[str, ...]:
    return tuple(name for name in PACKAGE_MANAGERS if shutil.which(name))


def collect_host_info() -> HostInfo:
    return HostInfo(
        username=_username(),
        hostname=socket.gethostname(),
        cwd=os.getcwd(),
        os_name=detect_os_name(),
        shell=os.path.basename(os.getenv("SHELL", "")),
        package_managers=detect_package_managers(),
    )
