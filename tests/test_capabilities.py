"""Tests for the host capability probe."""

import os
from collections import namedtuple

from sysprov import capabilities
from sysprov.capabilities import (
    detect_admin_group,
    detect_default_shell,
    install_hint,
    is_group_member,
)

Group = namedtuple("Group", "gr_name gr_gid gr_mem")
Passwd = namedtuple("Passwd", "pw_name pw_gid")


def test_admin_group_prefers_sudo(monkeypatch):
    monkeypatch.setattr(capabilities, "group_exists", lambda name: name in {"sudo", "wheel"})
    assert detect_admin_group() == "sudo"


def test_admin_group_falls_back_to_wheel(monkeypatch):
    monkeypatch.setattr(capabilities, "group_exists", lambda name: name == "wheel")
    assert detect_admin_group() == "wheel"


def test_admin_group_unknown(monkeypatch):
    monkeypatch.setattr(capabilities, "group_exists", lambda name: False)
    assert detect_admin_group() is None


def test_default_shell_picks_first_executable(temp_dir):
    missing = temp_dir / "nosh"
    not_executable = temp_dir / "plain"
    not_executable.write_text("")
    shell = temp_dir / "bash"
    shell.write_text("#!/bin/sh\n")
    os.chmod(shell, 0o755)
    assert detect_default_shell([str(missing), str(not_executable), str(shell)]) == str(shell)
    assert detect_default_shell([str(missing)]) == "/bin/sh"


def test_install_hints():
    assert install_hint("openssh-client", "dnf") == "sudo dnf install openssh-clients"
    assert install_hint("openssh-client", None) is None
    assert install_hint("unknown-package", "apt") is None
    assert install_hint("docker", "pacman") == "sudo pacman -S docker"


def test_group_membership(monkeypatch):
    groups = {"sudo": Group("sudo", 27, ["alice"]), "wheel": Group("wheel", 10, [])}
    users = {"alice": Passwd("alice", 1000), "bob": Passwd("bob", 10)}

    def getgrnam(name):
        return groups[name]

    def getpwnam(name):
        return users[name]

    monkeypatch.setattr(capabilities.grp, "getgrnam", getgrnam)
    monkeypatch.setattr(capabilities.pwd, "getpwnam", getpwnam)

    assert is_group_member("alice", "sudo") is True
    assert is_group_member("bob", "wheel") is True
    assert is_group_member("bob", "sudo") is False
    assert is_group_member("carol", "sudo") is False
    assert is_group_member("alice", "admins") is False
