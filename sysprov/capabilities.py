"""
Host capability probe.

Answers the environment questions the provisioning tools must not assume:
which group grants administrative privileges (sudo on Debian/Ubuntu, wheel on
RHEL/Fedora/Arch), which login shell to give new accounts, and which package
manager command would install a missing tool. Unknown answers are returned as
None so callers can warn instead of guessing.
"""

import grp
import os
import platform
import pwd
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from sysprov.commands import command_exists

ADMIN_GROUP_CANDIDATES: Sequence[str] = ("sudo", "wheel")
SHELL_CANDIDATES: Sequence[str] = ("/bin/bash", "/usr/bin/bash", "/bin/sh")
PACKAGE_MANAGERS: Sequence[str] = ("apt", "dnf", "yum", "pacman")

INSTALL_HINTS: Dict[str, Dict[str, str]] = {
    "openssh-client": {
        "apt": "sudo apt update && sudo apt install openssh-client",
        "dnf": "sudo dnf install openssh-clients",
        "yum": "sudo yum install openssh-clients",
        "pacman": "sudo pacman -S openssh",
        "darwin": "xcode-select --install",
    },
    "docker": {
        "apt": "sudo apt-get install docker.io",
        "dnf": "sudo dnf install docker",
        "yum": "sudo yum install docker",
        "pacman": "sudo pacman -S docker",
        "darwin": "Download Docker Desktop from docker.com",
    },
    "docker-compose": {
        "apt": "sudo apt-get install docker-compose",
        "dnf": "sudo dnf install docker-compose",
        "yum": "sudo yum install docker-compose",
        "pacman": "sudo pacman -S docker-compose",
        "darwin": "Docker Desktop ships the compose plugin",
    },
}


@dataclass
class HostCapabilities:
    admin_group: Optional[str]
    default_shell: str
    package_manager: Optional[str]


def install_hint(package: str, package_manager: Optional[str]) -> Optional[str]:
    """Return the command that would install package with package_manager, if known."""
    if not package_manager:
        return None
    return INSTALL_HINTS.get(package, {}).get(package_manager)


def group_exists(name: str) -> bool:
    try:
        grp.getgrnam(name)
    except KeyError:
        return False
    return True


def detect_admin_group(
    candidates: Sequence[str] = ADMIN_GROUP_CANDIDATES,
) -> Optional[str]:
    """Return the first administrative group present on this host, or None."""
    for name in candidates:
        if group_exists(name):
            return name
    return None


def detect_default_shell(candidates: Sequence[str] = SHELL_CANDIDATES) -> str:
    for shell in candidates:
        if os.path.isfile(shell) and os.access(shell, os.X_OK):
            return shell
    return "/bin/sh"


def detect_package_manager() -> Optional[str]:
    if platform.system() == "Darwin":
        return "darwin"
    for manager in PACKAGE_MANAGERS:
        if command_exists(manager):
            return manager
    return None


def is_group_member(username: str, group: str) -> bool:
    """Check supplementary and primary membership of username in group."""
    try:
        group_info = grp.getgrnam(group)
    except KeyError:
        return False
    if username in group_info.gr_mem:
        return True
    try:
        return pwd.getpwnam(username).pw_gid == group_info.gr_gid
    except KeyError:
        return False


def detect_capabilities() -> HostCapabilities:
    return HostCapabilities(
        admin_group=detect_admin_group(),
        default_shell=detect_default_shell(),
        package_manager=detect_package_manager(),
    )
