#!/usr/bin/env python3
"""
Docker Health Check
-------------------

Read-only diagnostic of the local Docker installation. Walks through nine
checks (installation, daemon, permissions, containers, images, a hello-world
run, compose, disk usage, networks and volumes) and ends with a summary.

Only a missing docker binary is fatal; every other problem is reported and the
remaining checks still run.

Usage:
  docker-health-check
  docker-health-check --skip-run-test
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import click
from rich import box
from rich.table import Table

from sysprov.capabilities import detect_package_manager, install_hint
from sysprov.cli import CONTEXT_SETTINGS, console_entry, invoke
from sysprov.commands import CommandResult, command_exists, run_command
from sysprov.console import (
    LOGGER_NAME,
    NordColors,
    console,
    print_banner,
    print_command,
    print_error,
    print_info,
    print_section,
    print_success,
    print_warning,
    setup_logging,
)
from sysprov.errors import ExternalToolFailure

TOP_IMAGES: int = 5
RUN_TEST_IMAGE: str = "hello-world"
USEFUL_COMMANDS = [
    ("docker ps -a", "Show all containers"),
    ("docker images", "Show all images"),
    ("docker system prune", "Clean up (remove unused data)"),
    ("docker stats", "Show resource usage"),
    ("docker logs <container>", "Show container logs"),
]


@dataclass
class DockerCheckConfig:
    run_test: bool = True


@dataclass
class CheckReport:
    """Outcome of a health check run; failures and warnings are short labels."""

    daemon_running: bool = False
    failures: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def ready(self) -> bool:
        return self.daemon_running and not self.failures


def docker(*args: str) -> CommandResult:
    return run_command(["docker", *args], check=False)


def count_lines(output: str) -> int:
    return len([line for line in output.splitlines() if line.strip()])


def print_table_output(output: str, limit: Optional[int] = None) -> None:
    lines = output.rstrip().splitlines()
    if limit is not None:
        lines = lines[: limit + 1]
    for line in lines:
        console.print(f"  {line}", highlight=False, markup=False)


# ----------------------------------------------------------------
# Individual Checks
# ----------------------------------------------------------------
def check_installation(report: CheckReport) -> None:
    print_section("1. Checking Docker Installation")
    if not command_exists("docker"):
        hint = install_hint("docker", detect_package_manager())
        message = "Docker is NOT installed!"
        if hint:
            message = f"{message} Install it with: {hint}"
        raise ExternalToolFailure(message, cmd=["docker"])
    result = docker("--version")
    print_success(f"Docker is installed: {result.stdout.strip()}")


def check_daemon(report: CheckReport) -> None:
    print_section("2. Checking Docker Daemon Status")
    if docker("info").ok:
        report.daemon_running = True
        print_success("Docker daemon is running")
        root_dir = docker("info", "--format", "{{.DockerRootDir}}").stdout.strip()
        driver = docker("info", "--format", "{{.Driver}}").stdout.strip()
        print_info(f"Docker root directory: {root_dir}")
        print_info(f"Storage driver: {driver}")
        return

    report.failures.append("daemon")
    print_error("Docker daemon is NOT running!")
    print_info("Start the daemon with:")
    if command_exists("systemctl"):
        print_command("sudo systemctl start docker")
        print_command("sudo systemctl enable docker  # For autostart")
    else:
        print_command("sudo service docker start  # or start Docker Desktop")


def check_permissions(report: CheckReport) -> None:
    print_section("3. Testing Docker Permissions")
    if docker("ps").ok:
        print_success("Docker runs without sudo (user is in docker group)")
        return
    # -n never prompts; a password requirement counts as "needs sudo" too.
    if run_command(["sudo", "-n", "docker", "ps"], check=False).ok:
        report.warnings.append("permissions")
        print_warning("Docker requires sudo privileges")
        print_info("Tip: add your user to the docker group, then log out and back in:")
        print_command("sudo usermod -aG docker $USER")
    else:
        report.failures.append("permissions")
        print_error("Cannot access Docker!")


def check_containers(report: CheckReport) -> None:
    print_section("4. Showing Running Containers")
    running = count_lines(docker("ps", "-q").stdout)
    if running == 0:
        print_info("No containers currently running")
        return
    print_success(f"{running} containers currently running")
    table = docker(
        "ps", "--format", "table {{.Names}}\t{{.Image}}\t{{.Status}}\t{{.Ports}}"
    )
    print_table_output(table.stdout)


def check_images(report: CheckReport) -> None:
    print_section("5. Checking Docker Images")
    images = count_lines(docker("images", "-q").stdout)
    if images == 0:
        print_info("No Docker images available")
        return
    print_success(f"{images} Docker images available")
    print_info(f"Top {TOP_IMAGES} images:")
    table = docker("images", "--format", "table {{.Repository}}\t{{.Tag}}\t{{.Size}}")
    print_table_output(table.stdout, limit=TOP_IMAGES)


def check_run(report: CheckReport) -> None:
    print_section("6. Docker Functionality Test")
    print_info(f"Running 'docker run --rm {RUN_TEST_IMAGE}'...")
    result = docker("run", "--rm", RUN_TEST_IMAGE)
    if result.ok:
        print_success("Docker functionality test successful!")
        print_info(f"{RUN_TEST_IMAGE} container executed and removed")
        return
    report.failures.append("run")
    print_error("Docker functionality test failed!")
    print_table_output(result.stderr or result.stdout)


def check_compose(report: CheckReport) -> None:
    print_section("7. Checking Docker Compose")
    if command_exists("docker-compose"):
        version = run_command(["docker-compose", "--version"], check=False)
        print_success(f"Docker Compose installed: {version.stdout.strip()}")
        return
    plugin = docker("compose", "version")
    if plugin.ok:
        print_success(f"Docker Compose (plugin) installed: {plugin.stdout.strip()}")
        return
    report.warnings.append("compose")
    print_warning("Docker Compose is not installed")
    hint = install_hint("docker-compose", detect_package_manager())
    if hint:
        print_command(hint)


def check_disk_usage(report: CheckReport) -> None:
    print_section("8. System Resources")
    usage = docker("system", "df", "--format", "table {{.Type}}\t{{.TotalCount}}\t{{.Size}}")
    if usage.ok:
        print_success("Docker disk usage:")
        print_table_output(usage.stdout)
    else:
        report.warnings.append("disk usage")
        print_warning("Could not determine disk usage")


def check_networks_volumes(report: CheckReport) -> None:
    print_section("9. Networks & Volumes")
    networks = count_lines(docker("network", "ls", "-q").stdout)
    volumes = count_lines(docker("volume", "ls", "-q").stdout)
    print_info(f"{networks} Docker networks available")
    print_info(f"{volumes} Docker volumes available")


# ----------------------------------------------------------------
# Main Workflow
# ----------------------------------------------------------------
def run_checks(cfg: DockerCheckConfig) -> CheckReport:
    report = CheckReport()
    checks: List[Callable[[CheckReport], None]] = [
        check_installation,
        check_daemon,
        check_permissions,
        check_containers,
        check_images,
    ]
    if cfg.run_test:
        checks.append(check_run)
    else:
        logging.getLogger(LOGGER_NAME).info("Skipping functionality test (--skip-run-test)")
    checks += [check_compose, check_disk_usage, check_networks_volumes]

    for check in checks:
        check(report)
    return report


def show_summary(report: CheckReport) -> None:
    print_section("Summary")
    if report.daemon_running:
        print_success("Docker is ready to use!")
    else:
        print_error("Docker has issues - see details above")
    if report.warnings:
        print_warning(f"Warnings: {', '.join(report.warnings)}")

    table = Table(title="Useful Docker commands", box=box.ROUNDED, style=NordColors.FROST_3)
    table.add_column("Command", style="header")
    table.add_column("Purpose", style="info")
    for command, purpose in USEFUL_COMMANDS:
        table.add_row(command, purpose)
    console.print(table)


@click.command(context_settings=CONTEXT_SETTINGS)
@click.option("--skip-run-test", is_flag=True, help=f"Do not run the {RUN_TEST_IMAGE} container.")
@click.option("--verbose", is_flag=True, help="Show executed commands.")
def cli(skip_run_test: bool, verbose: bool) -> None:
    """Check Docker installation, status and functionality."""
    setup_logging(verbose)
    print_banner("Docker Check", "Docker System Check")
    report = run_checks(DockerCheckConfig(run_test=not skip_run_test))
    show_summary(report)


def main(argv: Optional[List[str]] = None) -> int:
    return invoke(cli, argv, prog_name="docker-health-check")


run = console_entry(main)

if __name__ == "__main__":
    run()
