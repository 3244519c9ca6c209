"""
Pytest configuration and fixtures for sysprov tests.

Nothing here touches the real account database or runs real provisioning
tools: external commands go through FakeRunner and account lookups through
FakeSystem.
"""

from pathlib import Path
from typing import Callable, Dict, List, Optional, Set, Tuple

import pytest

from sysprov import account
from sysprov.capabilities import HostCapabilities
from sysprov.commands import CommandResult
from sysprov.errors import ExternalToolFailure


class FakeRunner:
    """Stand-in for run_command that records calls and dispatches on argv[0]."""

    def __init__(self) -> None:
        self.calls: List[List[str]] = []
        self.envs: List[Optional[Dict[str, str]]] = []
        self.capture: List[bool] = []
        self.handlers: Dict[str, Callable[[List[str]], CommandResult]] = {}

    def on(self, program: str, handler: Callable[[List[str]], CommandResult]) -> None:
        self.handlers[program] = handler

    def __call__(self, cmd, check=True, capture_output=True, env=None, timeout=None):
        cmd = [str(part) for part in cmd]
        self.calls.append(cmd)
        self.envs.append(env)
        self.capture.append(capture_output)
        handler = self.handlers.get(cmd[0])
        result = handler(cmd) if handler else CommandResult(cmd=cmd, returncode=0)
        if check and not result.ok:
            raise ExternalToolFailure(
                f"'{' '.join(cmd)}' exited with status {result.returncode}",
                cmd=cmd,
                returncode=result.returncode,
                stderr=result.stderr,
            )
        return result

    def commands(self, program: str) -> List[List[str]]:
        return [cmd for cmd in self.calls if cmd[0] == program]


class FakeSystem:
    """In-memory users and groups, with home directories under a temp root."""

    def __init__(self, home_root: Path) -> None:
        self.home_root = home_root
        self.users: Dict[str, Tuple[int, int]] = {}
        self.groups: Dict[str, Set[str]] = {"sudo": set()}
        self.chowned: List[Tuple[str, int, int]] = []

    def add_user(self, name: str) -> None:
        uid = 1000 + len(self.users)
        self.users[name] = (uid, uid)
        (self.home_root / name).mkdir(parents=True, exist_ok=True)

    def user_exists(self, name: str) -> bool:
        return name in self.users

    def get_user_ids(self, name: str) -> Tuple[int, int]:
        return self.users[name]

    def resolve_home(self, name: str) -> Path:
        return self.home_root / name

    def is_group_member(self, name: str, group: str) -> bool:
        return name in self.groups.get(group, set())

    def lchown(self, path, uid: int, gid: int) -> None:
        self.chowned.append((str(path), uid, gid))

    def useradd(self, cmd: List[str]) -> CommandResult:
        self.add_user(cmd[-1])
        return CommandResult(cmd=cmd, returncode=0)

    def usermod(self, cmd: List[str]) -> CommandResult:
        group, name = cmd[-2], cmd[-1]
        self.groups.setdefault(group, set()).add(name)
        return CommandResult(cmd=cmd, returncode=0)


def fake_ssh_keygen(cmd: List[str]) -> CommandResult:
    """Mimic ssh-keygen: -f writes a key pair, -lf prints a fingerprint."""
    if "-lf" in cmd:
        return CommandResult(cmd=cmd, returncode=0, stdout="256 SHA256:fake a@b.com (ED25519)\n")
    path = Path(cmd[cmd.index("-f") + 1])
    key_type = cmd[cmd.index("-t") + 1]
    comment = cmd[cmd.index("-C") + 1]
    path.write_text(f"PRIVATE {key_type}\n")
    path.with_name(f"{path.name}.pub").write_text(f"ssh-{key_type} AAAAfakekey {comment}\n")
    return CommandResult(cmd=cmd, returncode=0)


@pytest.fixture
def temp_dir(tmp_path):
    """Provide a temporary directory for tests."""
    return tmp_path


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def fake_home(monkeypatch, tmp_path):
    """Point HOME at a temp directory so ~/.ssh resolves inside it."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("SSH_AUTH_SOCK", raising=False)
    monkeypatch.delenv("SSH_AGENT_PID", raising=False)
    return home


@pytest.fixture
def keygen_env(monkeypatch, fake_home, fake_runner):
    """A workstation with ssh-keygen available through the fake runner."""
    from sysprov import keygen

    fake_runner.on("ssh-keygen", fake_ssh_keygen)
    monkeypatch.setattr(keygen, "run_command", fake_runner)
    monkeypatch.setattr(keygen, "command_exists", lambda name: True)
    return fake_home / ".ssh"


@pytest.fixture
def caps():
    return HostCapabilities(admin_group="sudo", default_shell="/bin/bash", package_manager="apt")


@pytest.fixture
def fake_system(monkeypatch, tmp_path, fake_runner, caps):
    """A root shell on a host whose account database lives in FakeSystem."""
    system = FakeSystem(tmp_path / "srv" / "home")
    system.home_root.mkdir(parents=True)
    fake_runner.on("useradd", system.useradd)
    fake_runner.on("usermod", system.usermod)

    monkeypatch.setattr(account.os, "geteuid", lambda: 0)
    monkeypatch.setattr(account.os, "lchown", system.lchown)
    monkeypatch.setattr(account, "user_exists", system.user_exists)
    monkeypatch.setattr(account, "get_user_ids", system.get_user_ids)
    monkeypatch.setattr(account, "resolve_home", system.resolve_home)
    monkeypatch.setattr(account, "is_group_member", system.is_group_member)
    monkeypatch.setattr(account, "detect_capabilities", lambda: caps)
    monkeypatch.setattr(account, "run_command", fake_runner)
    return system
