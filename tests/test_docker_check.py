"""Tests for the Docker health check."""

import pytest

from sysprov import docker_check
from sysprov.commands import CommandResult
from sysprov.docker_check import DockerCheckConfig, count_lines, run_checks


def docker_host(daemon_up=True, compose_plugin=True, run_ok=True):
    def handler(cmd):
        args = cmd[1:]
        if args == ["--version"]:
            return CommandResult(cmd, 0, "Docker version 27.0.3, build 7d4bcd8\n")
        if args[0] in ("info", "ps", "images", "system", "network", "volume") and not daemon_up:
            return CommandResult(cmd, 1, "", "Cannot connect to the Docker daemon")
        if args[:2] == ["ps", "-q"]:
            return CommandResult(cmd, 0, "abc123\ndef456\n")
        if args[:2] == ["images", "-q"]:
            return CommandResult(cmd, 0, "img1\n")
        if args[:2] == ["network", "ls"]:
            return CommandResult(cmd, 0, "n1\nn2\nn3\n")
        if args[:2] == ["compose", "version"]:
            return CommandResult(cmd, 0 if compose_plugin else 1, "Docker Compose version v2.27.0\n")
        if args[0] == "run":
            return CommandResult(cmd, 0 if run_ok else 125, "Hello from Docker!\n", "pull failed")
        return CommandResult(cmd, 0, "")

    return handler


@pytest.fixture
def docker_env(monkeypatch, fake_runner):
    monkeypatch.setattr(docker_check, "run_command", fake_runner)
    monkeypatch.setattr(docker_check, "command_exists", lambda name: name == "docker")
    monkeypatch.setattr(docker_check, "detect_package_manager", lambda: "apt")
    return fake_runner


def test_count_lines():
    assert count_lines("a\n\nb\n") == 2
    assert count_lines("") == 0


def test_missing_docker_exits_1(monkeypatch, fake_runner):
    monkeypatch.setattr(docker_check, "run_command", fake_runner)
    monkeypatch.setattr(docker_check, "command_exists", lambda name: False)
    assert docker_check.main([]) == 1
    assert fake_runner.calls == []


def test_healthy_host(docker_env):
    docker_env.on("docker", docker_host())
    report = run_checks(DockerCheckConfig())
    assert report.daemon_running
    assert report.ready
    assert report.warnings == []
    assert ["docker", "run", "--rm", "hello-world"] in docker_env.calls


def test_daemon_down_is_reported_not_fatal(docker_env):
    docker_env.on("docker", docker_host(daemon_up=False))
    docker_env.on("sudo", lambda cmd: CommandResult(cmd, 1, "", "a password is required"))
    report = run_checks(DockerCheckConfig(run_test=False))
    assert not report.daemon_running
    assert "daemon" in report.failures
    assert "permissions" in report.failures
    assert docker_check.main(["--skip-run-test"]) == 0


def test_sudo_only_access_is_a_warning(docker_env):
    def handler(cmd):
        if cmd[1] == "ps" and "-q" not in cmd:
            return CommandResult(cmd, 1, "", "permission denied")
        return docker_host()(cmd)

    docker_env.on("docker", handler)
    report = run_checks(DockerCheckConfig(run_test=False))
    assert "permissions" in report.warnings
    assert ["sudo", "-n", "docker", "ps"] in docker_env.calls


def test_skip_run_test(docker_env):
    docker_env.on("docker", docker_host())
    assert docker_check.main(["--skip-run-test"]) == 0
    assert not [cmd for cmd in docker_env.commands("docker") if cmd[1] == "run"]


def test_failed_run_and_missing_compose(docker_env):
    docker_env.on("docker", docker_host(compose_plugin=False, run_ok=False))
    report = run_checks(DockerCheckConfig())
    assert "run" in report.failures
    assert "compose" in report.warnings
    assert not report.ready
