#!/usr/bin/env python3
"""
Account Provisioner
-------------------

Creates a user with administrative privileges and optionally sets up SSH key
authentication for it.

  • Validates the username and the public key before touching the system
  • Creates the account with a home directory and the host's default shell
  • Adds it to the administrative group detected on this host (sudo or wheel)
  • Creates ~/.ssh (0700) and writes authorized_keys (0600), owned by the user
  • Optionally prompts for an interactive password
  • Safe to re-run: an existing account is kept and the remaining steps applied

Every mutating step is replaced by a "[DRY-RUN] Would ..." report with
--dry-run, while validation keeps its real failure behaviour.

Usage:
  sudo provision-account --user admin
  sudo provision-account --user myuser --key "ssh-ed25519 AAAA... me@host"
  sudo provision-account --user admin --key-file ~/.ssh/id_ed25519.pub
  sudo provision-account --user admin --dry-run
"""

import logging
import os
import pwd
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

import click
from rich import box
from rich.panel import Panel
from rich.table import Table

from sysprov.capabilities import HostCapabilities, detect_capabilities, is_group_member
from sysprov.cli import CONTEXT_SETTINGS, console_entry, invoke
from sysprov.commands import run_command
from sysprov.console import (
    LOGGER_NAME,
    NordColors,
    console,
    print_banner,
    print_command,
    print_dry_run,
    print_info,
    print_section,
    print_step,
    print_success,
    print_warning,
    setup_logging,
)
from sysprov.errors import (
    AlreadyExists,
    InvalidArgument,
    NotFound,
    PermissionDenied,
)

# ----------------------------------------------------------------
# Configuration
# ----------------------------------------------------------------
DEFAULT_USERNAME: str = "admin"
MAX_USERNAME_LENGTH: int = 32
USERNAME_PATTERN = re.compile(r"[a-z_][a-z0-9_-]*")
RECOGNIZED_KEY_PREFIXES: Tuple[str, ...] = (
    "ssh-rsa",
    "ssh-dss",
    "ssh-ed25519",
    "ecdsa-sha2-",
)
HOME_ROOT: Path = Path("/home")
SSH_DIR_MODE: int = 0o700
AUTHORIZED_KEYS_MODE: int = 0o600


@dataclass
class AccountConfig:
    username: str = DEFAULT_USERNAME
    public_key: Optional[str] = None
    key_file: Optional[Path] = None
    dry_run: bool = False
    skip_password: bool = False


# ----------------------------------------------------------------
# Validation
# ----------------------------------------------------------------
def ensure_root() -> None:
    if os.geteuid() != 0:
        raise PermissionDenied("Please run as root (use sudo).")


def validate_username(username: str) -> str:
    if not USERNAME_PATTERN.fullmatch(username):
        raise InvalidArgument(
            f"Invalid username: '{username}'. Must start with a lowercase letter or "
            "underscore and contain only lowercase letters, numbers, hyphens and underscores."
        )
    if len(username) > MAX_USERNAME_LENGTH:
        raise InvalidArgument(
            f"Username too long: '{username}' (max {MAX_USERNAME_LENGTH} characters)."
        )
    return username


def validate_public_key(key: str) -> str:
    """Return the stripped key if it is a single line with a recognized algorithm prefix."""
    key = key.strip()
    if not key:
        raise InvalidArgument("SSH public key is empty.")
    if "\n" in key or "\r" in key:
        raise InvalidArgument("SSH public key must be a single line.")
    if not key.startswith(RECOGNIZED_KEY_PREFIXES):
        raise InvalidArgument(
            "Invalid SSH key format. Key must start with ssh-rsa, ssh-dss, "
            "ssh-ed25519, or ecdsa-sha2-"
        )
    return key


def read_key_file(path: Path) -> str:
    """
    Read and validate a public key file. The first non-blank line is the key;
    any further lines are ignored with a warning.
    """
    if not path.exists():
        raise NotFound(f"SSH key file not found: {path}")
    if not path.is_file():
        raise NotFound(f"SSH key file is not a regular file: {path}")
    if not os.access(path, os.R_OK):
        raise PermissionDenied(f"Cannot read SSH key file: {path} (permission denied)")
    try:
        content = path.read_text()
    except PermissionError as e:
        raise PermissionDenied(
            f"Cannot read SSH key file: {path} (permission denied)"
        ) from e
    except UnicodeDecodeError as e:
        raise InvalidArgument(f"Invalid SSH key in file: {path} (not text)") from e

    lines = [line.strip() for line in content.splitlines() if line.strip()]
    if not lines:
        raise InvalidArgument(f"Invalid SSH key in file: {path} (file is empty)")
    if len(lines) > 1:
        logging.getLogger(LOGGER_NAME).warning(
            f"{path} contains {len(lines)} lines; only the first key is used."
        )
    try:
        return validate_public_key(lines[0])
    except InvalidArgument as e:
        raise InvalidArgument(f"Invalid SSH key in file: {path}. {e.args[0]}") from e


# ----------------------------------------------------------------
# Account Database Helpers
# ----------------------------------------------------------------
def user_exists(username: str) -> bool:
    try:
        pwd.getpwnam(username)
    except KeyError:
        return False
    return True


def get_user_ids(username: str) -> Tuple[int, int]:
    try:
        record = pwd.getpwnam(username)
    except KeyError:
        raise NotFound(f"User '{username}' not found.") from None
    return record.pw_uid, record.pw_gid


def resolve_home(username: str) -> Path:
    """Home directory from the account database, or the conventional path for a new account."""
    try:
        return Path(pwd.getpwnam(username).pw_dir)
    except KeyError:
        return HOME_ROOT / username


# ----------------------------------------------------------------
# Provisioning Steps
# ----------------------------------------------------------------
def create_user(username: str, caps: HostCapabilities, dry_run: bool) -> bool:
    """Create the account. Returns False when it already existed."""
    print_step(f"Creating user '{username}'...")
    if user_exists(username):
        logging.getLogger(LOGGER_NAME).warning(
            "%s: User '%s' already exists.", AlreadyExists.kind, username
        )
        return False

    if dry_run:
        print_dry_run(
            f"create user '{username}' with a home directory and shell {caps.default_shell}"
        )
        return True

    run_command(["useradd", "-m", "-s", caps.default_shell, username])
    print_success(f"Created user '{username}'")
    return True


def grant_admin(username: str, caps: HostCapabilities, dry_run: bool) -> bool:
    """Add the account to the administrative group. Returns False if no group is known."""
    group = caps.admin_group
    if group is None:
        print_warning(
            "Neither 'sudo' nor 'wheel' group found. "
            f"Please add '{username}' to the appropriate admin group manually."
        )
        return False

    if is_group_member(username, group):
        print_info(f"User '{username}' is already a member of the '{group}' group.")
        return True

    if dry_run:
        print_dry_run(f"add user '{username}' to the '{group}' group")
        return True

    run_command(["usermod", "-aG", group, username])
    print_success(f"Added user '{username}' to the '{group}' group")
    return True


def refuse_symlinks(*paths: Path) -> None:
    """Raise PermissionDenied if any of paths is a symbolic link."""
    for path in paths:
        if path.is_symlink():
            raise PermissionDenied(f"Refusing to follow symbolic link: {path}")


def write_authorized_keys(path: Path, public_key: str) -> None:
    """Replace the file with the single key, created 0600 from the start."""
    flags = os.O_WRONLY | os.O_CREAT | os.O_TRUNC | os.O_NOFOLLOW
    try:
        fd = os.open(path, flags, AUTHORIZED_KEYS_MODE)
    except OSError as e:
        raise PermissionDenied(f"Cannot write {path}: {e.strerror}") from e
    with os.fdopen(fd, "w") as f:
        os.fchmod(f.fileno(), AUTHORIZED_KEYS_MODE)
        f.write(f"{public_key}\n")


def show_manual_key_instructions(username: str, auth_keys: Path) -> None:
    print_warning(f"No SSH public key provided for user '{username}'")
    print_warning("You can add an SSH key manually later:")
    print_command(f"echo 'your-public-key' | sudo tee -a {auth_keys}")
    print_command(f"sudo chmod 600 {auth_keys}")
    print_command(f"sudo chown {username}:{username} {auth_keys}")
    print_info("Or from your workstation:")
    print_command(f"ssh-copy-id {username}@your-server")


def setup_ssh_dir(
    username: str, home: Path, public_key: Optional[str], dry_run: bool
) -> None:
    ssh_dir = home / ".ssh"
    auth_keys = ssh_dir / "authorized_keys"
    print_step(f"Setting up SSH configuration for user '{username}'...")
    refuse_symlinks(ssh_dir, auth_keys)

    if dry_run:
        if not ssh_dir.is_dir():
            print_dry_run(f"create SSH directory: {ssh_dir}")
        print_dry_run(f"set directory permissions: {SSH_DIR_MODE:o}")
        print_dry_run(f"set ownership: {username}:{username}")
        if public_key:
            print_dry_run(f"write SSH public key to: {auth_keys}")
        else:
            show_manual_key_instructions(username, auth_keys)
        return

    uid, gid = get_user_ids(username)
    ssh_dir.mkdir(mode=SSH_DIR_MODE, parents=True, exist_ok=True)
    os.chmod(ssh_dir, SSH_DIR_MODE)
    os.lchown(ssh_dir, uid, gid)
    logging.getLogger(LOGGER_NAME).debug(f"Created SSH directory: {ssh_dir}")

    if public_key:
        write_authorized_keys(auth_keys, public_key)
        os.lchown(auth_keys, uid, gid)
        print_success(f"Added SSH public key for user '{username}'")
    else:
        show_manual_key_instructions(username, auth_keys)


def set_password(username: str, dry_run: bool, skip: bool) -> bool:
    """Prompt for the account password with passwd. Returns True if it was set."""
    if dry_run:
        print_dry_run(f"prompt for password for user '{username}'")
        return False
    if skip:
        print_info("Skipping password setup (--skip-password).")
        return False
    if not sys.stdin.isatty():
        print_warning("Standard input is not a terminal; skipping password setup.")
        print_info("Set it later with:")
        print_command(f"sudo passwd {username}")
        return False

    print_warning(f"Setting password for '{username}'...")
    console.print()
    run_command(["passwd", username], capture_output=False, timeout=None)
    console.print()
    print_info(f"Password set for '{username}'.")
    return True


def count_authorized_keys(path: Path) -> int:
    """Count lines that carry a recognized key algorithm prefix."""
    try:
        lines = path.read_text().splitlines()
    except OSError:
        return 0
    return sum(1 for line in lines if line.strip().startswith(RECOGNIZED_KEY_PREFIXES))


def validate_ssh_setup(username: str, home: Path) -> int:
    """Report how many keys the account trusts. Observational only."""
    auth_keys = home / ".ssh" / "authorized_keys"
    print_step(f"Validating SSH setup for user '{username}'...")
    if not auth_keys.is_file() or auth_keys.stat().st_size == 0:
        print_info(f"User '{username}' has no SSH keys configured")
        return 0
    count = count_authorized_keys(auth_keys)
    if count > 0:
        print_success(f"User '{username}' has {count} SSH key(s) configured")
    else:
        print_warning(
            f"User '{username}' authorized_keys file exists but contains no valid SSH keys"
        )
    return count


# ----------------------------------------------------------------
# Reporting
# ----------------------------------------------------------------
def show_summary(cfg: AccountConfig, caps: HostCapabilities) -> None:
    table = Table(box=box.ROUNDED, show_header=False, style=NordColors.FROST_3)
    table.add_column("Setting", style="header")
    table.add_column("Value", style="info")
    table.add_row("Target user", cfg.username)
    table.add_row("SSH key provided", "Yes" if cfg.public_key else "No")
    if cfg.key_file:
        table.add_row("SSH key file", str(cfg.key_file))
    table.add_row("Admin group", caps.admin_group or "unknown")
    table.add_row("Login shell", caps.default_shell)
    if cfg.dry_run:
        table.add_row("Mode", "DRY RUN (no changes will be made)")
    console.print(
        Panel(table, title="[banner]Configuration Summary[/banner]", border_style=NordColors.FROST_3)
    )


def show_next_steps(
    username: str, home: Path, caps: HostCapabilities, admin: bool, key_count: int
) -> None:
    print_section("User creation completed successfully!")
    lines: List[str] = [
        f"✅ Home directory: {home}",
        f"✅ Admin privileges ({caps.admin_group})" if admin else "⚠️  No admin group membership",
        f"✅ Login shell: {caps.default_shell}",
        "✅ SSH key authentication configured"
        if key_count
        else "⚠️  No SSH key configured (password authentication only)",
    ]
    for line in lines:
        console.print(f"  {line}", highlight=False)
    console.print()
    print_info("You can now:")
    console.print(f"  • Log in as: {username}", highlight=False)
    if admin:
        console.print("  • Use sudo for administrative tasks")
    if key_count:
        console.print("  • Connect via SSH using your private key:")
        print_command(f"ssh {username}@your-server")


# ----------------------------------------------------------------
# Main Workflow
# ----------------------------------------------------------------
def provision_account(cfg: AccountConfig, caps: Optional[HostCapabilities] = None) -> int:
    """
    Run the provisioning pass for an already validated configuration.

    Returns the number of keys found in authorized_keys afterwards (0 in dry-run).
    """
    caps = caps or detect_capabilities()
    show_summary(cfg, caps)

    create_user(cfg.username, caps, cfg.dry_run)
    admin = grant_admin(cfg.username, caps, cfg.dry_run)
    home = resolve_home(cfg.username)
    setup_ssh_dir(cfg.username, home, cfg.public_key, cfg.dry_run)
    set_password(cfg.username, cfg.dry_run, cfg.skip_password)

    if cfg.dry_run:
        print_info("[DRY-RUN] All validation checks passed")
        print_success("[DRY-RUN] User creation completed successfully")
        return 0

    key_count = validate_ssh_setup(cfg.username, home)
    show_next_steps(cfg.username, home, caps, admin, key_count)
    return key_count


def resolve_config(
    username: str,
    key: Optional[str],
    key_file: Optional[Path],
    dry_run: bool,
    skip_password: bool,
) -> AccountConfig:
    """
    Validate everything that does not need privileges: flag combination,
    username and an inline key.
    """
    if key is not None and key_file is not None:
        raise InvalidArgument("Cannot specify both --key and --key-file")
    return AccountConfig(
        username=validate_username(username),
        public_key=validate_public_key(key) if key is not None else None,
        key_file=key_file,
        dry_run=dry_run,
        skip_password=skip_password,
    )


@click.command(context_settings=CONTEXT_SETTINGS)
@click.option(
    "--user",
    "username",
    metavar="NAME",
    default=DEFAULT_USERNAME,
    show_default=True,
    help="Username to create.",
)
@click.option("--key", metavar="STRING", help="SSH public key string to add.")
@click.option(
    "--key-file",
    metavar="PATH",
    type=click.Path(path_type=Path),
    help="Path to an SSH public key file to add.",
)
@click.option("--dry-run", is_flag=True, help="Show what would be done without making changes.")
@click.option("--skip-password", is_flag=True, help="Do not prompt for a password.")
@click.option("--verbose", is_flag=True, help="Show executed commands.")
def cli(
    username: str,
    key: Optional[str],
    key_file: Optional[Path],
    dry_run: bool,
    skip_password: bool,
    verbose: bool,
) -> None:
    """
    Create a user with administrative privileges and optionally set up SSH
    key authentication. Must be run as root.

    \b
    Examples:
      sudo provision-account --user admin
      sudo provision-account --user myuser --key "ssh-rsa AAAAB3NzaC1y..."
      sudo provision-account --user admin --key-file ~/.ssh/id_rsa.pub
      sudo provision-account --user admin --dry-run
    """
    setup_logging(verbose)
    cfg = resolve_config(username, key, key_file, dry_run, skip_password)
    ensure_root()
    if cfg.key_file is not None:
        cfg.public_key = read_key_file(cfg.key_file)

    print_banner("Add Admin", "Account Provisioner")
    provision_account(cfg)


def main(argv: Optional[List[str]] = None) -> int:
    return invoke(cli, argv, prog_name="provision-account")


run = console_entry(main)

if __name__ == "__main__":
    run()
