#!/usr/bin/env python3
"""
SSH Key Provisioner
-------------------

Generates a new passphrase-less SSH key pair in ~/.ssh without ever touching
an existing key:

  • Validates the key type (ed25519, rsa, ecdsa) and the comment/email
  • Picks the lowest free "<name>_<n>" suffix when the target is taken
  • Delegates key material to ssh-keygen and tightens file permissions
  • Optionally registers the key with an ssh-agent, starting one if needed
  • Prints the public key, its fingerprint and next-step commands

Usage:
  provision-key -e user@example.com
  provision-key -e user@example.com -n github_key -t rsa -a
"""

import logging
import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import click
from rich.progress import Progress, SpinnerColumn, TextColumn

from sysprov.capabilities import detect_package_manager, install_hint
from sysprov.cli import CONTEXT_SETTINGS, console_entry, invoke
from sysprov.commands import command_exists, run_command
from sysprov.console import (
    LOGGER_NAME,
    NordColors,
    console,
    display_panel,
    print_banner,
    print_command,
    print_info,
    print_section,
    print_step,
    print_success,
    print_warning,
    setup_logging,
)
from sysprov.errors import ExternalToolFailure, InvalidArgument, ProvisionError

# ----------------------------------------------------------------
# Configuration
# ----------------------------------------------------------------
PRIVATE_KEY_MODE: int = 0o600
PUBLIC_KEY_MODE: int = 0o644
SSH_DIR_MODE: int = 0o700
RSA_KEY_BITS: int = 4096

AGENT_VAR_PATTERN = re.compile(r"^(SSH_AUTH_SOCK|SSH_AGENT_PID)=([^;]+);", re.MULTILINE)


class KeyType(str, Enum):
    ED25519 = "ed25519"
    RSA = "rsa"
    ECDSA = "ecdsa"


DEFAULT_KEY_TYPE: KeyType = KeyType.ED25519
SUPPORTED_KEY_TYPES: List[str] = [k.value for k in KeyType]


def default_key_dir() -> Path:
    return Path.home() / ".ssh"


@dataclass
class KeygenConfig:
    email: str
    key_type: KeyType = DEFAULT_KEY_TYPE
    key_name: Optional[str] = None
    add_to_agent: bool = False
    key_dir: Path = field(default_factory=default_key_dir)

    @property
    def base_path(self) -> Path:
        return self.key_dir / (self.key_name or default_key_name(self.key_type))


@dataclass
class AgentHandle:
    """
    Connection details of an ssh-agent.

    started is True only when this run launched the agent, in which case the
    operator has to export the variables to reuse it from their shell.
    """

    auth_sock: str
    pid: Optional[int] = None
    started: bool = False

    @classmethod
    def from_environment(cls, environ: Mapping[str, str]) -> Optional["AgentHandle"]:
        sock = environ.get("SSH_AUTH_SOCK")
        if not sock:
            return None
        pid = environ.get("SSH_AGENT_PID")
        return cls(auth_sock=sock, pid=int(pid) if pid and pid.isdigit() else None)

    def env(self) -> Dict[str, str]:
        env = dict(os.environ)
        env["SSH_AUTH_SOCK"] = self.auth_sock
        if self.pid is not None:
            env["SSH_AGENT_PID"] = str(self.pid)
        return env

    def export_lines(self) -> List[str]:
        lines = [f"export SSH_AUTH_SOCK={self.auth_sock}"]
        if self.pid is not None:
            lines.append(f"export SSH_AGENT_PID={self.pid}")
        return lines


# ----------------------------------------------------------------
# Validation
# ----------------------------------------------------------------
def validate_key_type(value: str) -> KeyType:
    try:
        return KeyType(value)
    except ValueError:
        raise InvalidArgument(
            f"Invalid key type: {value}. Supported types: {', '.join(SUPPORTED_KEY_TYPES)}"
        ) from None


def validate_email(value: Optional[str]) -> str:
    if value is None or not value.strip():
        raise InvalidArgument("Email address is required (-e EMAIL).")
    if "\n" in value or "\r" in value:
        raise InvalidArgument("Email address must be a single line.")
    return value.strip()


def validate_key_name(value: Optional[str]) -> Optional[str]:
    """A custom key name is a bare file name inside the key directory."""
    if value is None:
        return None
    if not value or value in (".", "..") or os.sep in value:
        raise InvalidArgument(f"Invalid key name: '{value}'. Use a plain file name.")
    return value


def default_key_name(key_type: KeyType) -> str:
    return f"id_{key_type.value}"


# ----------------------------------------------------------------
# Key Path Resolution
# ----------------------------------------------------------------
def public_key_path(private_path: Path) -> Path:
    return private_path.with_name(f"{private_path.name}.pub")


def key_pair_exists(private_path: Path) -> bool:
    """True when either half of the pair occupies the path, dangling links included."""
    return os.path.lexists(private_path) or os.path.lexists(public_key_path(private_path))


def resolve_key_path(base: Path) -> Path:
    """
    Return base if neither base nor base.pub exists, otherwise the first
    "<base>_<n>" (n = 1, 2, ...) whose pair is entirely free.
    """
    candidate = base
    counter = 1
    while key_pair_exists(candidate):
        candidate = base.with_name(f"{base.name}_{counter}")
        counter += 1
    return candidate


# ----------------------------------------------------------------
# Key Generation
# ----------------------------------------------------------------
def ensure_ssh_dir(key_dir: Path) -> None:
    if key_dir.is_dir():
        return
    print_step(f"Creating {key_dir} directory...")
    key_dir.mkdir(mode=SSH_DIR_MODE, parents=True, exist_ok=True)
    os.chmod(key_dir, SSH_DIR_MODE)


def ensure_ssh_keygen() -> None:
    if command_exists("ssh-keygen"):
        return
    message = "ssh-keygen is not installed on this system."
    hint = install_hint("openssh-client", detect_package_manager())
    if hint:
        message = f"{message} Install it with: {hint}"
    else:
        message = f"{message} Install the OpenSSH client for your operating system."
    raise ExternalToolFailure(message, cmd=["ssh-keygen"])


def keygen_command(path: Path, key_type: KeyType, comment: str) -> List[str]:
    cmd = ["ssh-keygen", "-t", key_type.value]
    if key_type is KeyType.RSA:
        cmd += ["-b", str(RSA_KEY_BITS)]
    cmd += ["-C", comment, "-f", str(path), "-N", ""]
    return cmd


def generate_key_pair(path: Path, key_type: KeyType, comment: str) -> None:
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task_id = progress.add_task(f"Generating {key_type.value} SSH key...", total=None)
        run_command(keygen_command(path, key_type, comment))
        progress.update(task_id, description="Key generation completed!")

    if not path.exists() or not public_key_path(path).exists():
        raise ExternalToolFailure(
            f"ssh-keygen reported success but {path} was not created",
            cmd=keygen_command(path, key_type, comment),
        )


def set_key_permissions(path: Path) -> None:
    os.chmod(path, PRIVATE_KEY_MODE)
    os.chmod(public_key_path(path), PUBLIC_KEY_MODE)


def key_fingerprint(pub_path: Path) -> Optional[str]:
    result = run_command(["ssh-keygen", "-lf", str(pub_path)], check=False)
    if not result.ok:
        logging.getLogger(LOGGER_NAME).debug(
            f"Could not read fingerprint of {pub_path}: {result.stderr.strip()}"
        )
        return None
    return result.stdout.strip() or None


# ----------------------------------------------------------------
# SSH Agent Registration
# ----------------------------------------------------------------
def parse_agent_output(output: str) -> Dict[str, str]:
    """Extract SSH_AUTH_SOCK / SSH_AGENT_PID from `ssh-agent -s` output."""
    return {name: value.strip() for name, value in AGENT_VAR_PATTERN.findall(output)}


def agent_reachable(handle: AgentHandle) -> bool:
    # ssh-add -l exits 0 (keys listed) or 1 (no identities) when the agent answers.
    result = run_command(["ssh-add", "-l"], check=False, env=handle.env())
    return result.returncode in (0, 1)


def start_agent() -> AgentHandle:
    result = run_command(["ssh-agent", "-s"])
    variables = parse_agent_output(result.stdout)
    sock = variables.get("SSH_AUTH_SOCK")
    if not sock:
        raise ExternalToolFailure(
            "ssh-agent started but did not report SSH_AUTH_SOCK",
            cmd=result.cmd,
            stderr=result.stderr,
        )
    pid = variables.get("SSH_AGENT_PID")
    return AgentHandle(
        auth_sock=sock, pid=int(pid) if pid and pid.isdigit() else None, started=True
    )


def ensure_agent(handle: Optional[AgentHandle]) -> AgentHandle:
    """Return a reachable agent, starting a new one when handle is absent or stale."""
    if handle is not None and agent_reachable(handle):
        return handle
    if handle is not None:
        print_warning(f"ssh-agent at {handle.auth_sock} is not reachable.")
    print_step("Starting ssh-agent...")
    return start_agent()


def register_with_agent(key_path: Path, handle: Optional[AgentHandle]) -> AgentHandle:
    handle = ensure_agent(handle)
    run_command(["ssh-add", str(key_path)], env=handle.env())
    return handle


# ----------------------------------------------------------------
# Reporting
# ----------------------------------------------------------------
def show_next_steps(key_path: Path, agent: Optional[AgentHandle]) -> None:
    pub_path = public_key_path(key_path)
    display_panel(
        pub_path.read_text().strip(),
        style=NordColors.FROST_2,
        title="Your Public Key (copy this to GitHub/GitLab/Server)",
    )

    fingerprint = key_fingerprint(pub_path)
    if fingerprint:
        print_info(f"Fingerprint: {fingerprint}")

    print_section("Next Steps")
    if agent is None:
        print_info("To add this key to your SSH agent, run:")
        print_command(f"ssh-add {key_path}")
    elif agent.started:
        print_info("A new ssh-agent was started. Attach your shell to it with:")
        for line in agent.export_lines():
            print_command(line)
    print_info("To test the connection (for GitHub), run:")
    print_command("ssh -T git@github.com")
    print_info("To test a server, run:")
    print_command(f"ssh -i {key_path} user@your-server")


# ----------------------------------------------------------------
# Main Workflow
# ----------------------------------------------------------------
def provision_key(cfg: KeygenConfig, agent: Optional[AgentHandle] = None) -> Path:
    """Generate the key pair described by cfg and return the private key path."""
    logger = logging.getLogger(LOGGER_NAME)
    ensure_ssh_keygen()
    ensure_ssh_dir(cfg.key_dir)

    base = cfg.base_path
    key_path = resolve_key_path(base)
    if key_path != base:
        print_warning(f"SSH key already exists at {base}")
        print_info(f"Using unique filename: {key_path}")

    print_step(f"Generating new {cfg.key_type.value} SSH key...")
    logger.info(f"Email: {cfg.email}")
    logger.info(f"Key file: {key_path}")
    generate_key_pair(key_path, cfg.key_type, cfg.email)
    set_key_permissions(key_path)

    print_success("SSH key generated successfully!")
    console.print(f"Private key: {key_path}", highlight=False)
    console.print(f"Public key: {public_key_path(key_path)}", highlight=False)

    registered: Optional[AgentHandle] = None
    if cfg.add_to_agent:
        try:
            registered = register_with_agent(key_path, agent)
            print_success(f"Key added to ssh-agent ({registered.auth_sock})")
        except ProvisionError as e:
            print_warning(f"Could not register the key with ssh-agent: {e}")
            print_warning("The key pair was generated and is ready to use.")

    show_next_steps(key_path, registered)
    return key_path


@click.command(context_settings=CONTEXT_SETTINGS)
@click.option("-e", "email", metavar="EMAIL", help="Email address for the key comment (required).")
@click.option("-n", "key_name", metavar="NAME", help="Custom name for the key file (default: id_TYPE).")
@click.option(
    "-t",
    "key_type",
    metavar="TYPE",
    default=DEFAULT_KEY_TYPE.value,
    show_default=True,
    help=f"Key type: {', '.join(SUPPORTED_KEY_TYPES)}.",
)
@click.option("-a", "add_to_agent", is_flag=True, help="Add the new key to ssh-agent, starting one if needed.")
@click.option("--verbose", is_flag=True, help="Show executed commands.")
def cli(
    email: Optional[str],
    key_name: Optional[str],
    key_type: str,
    add_to_agent: bool,
    verbose: bool,
) -> None:
    """
    Generate a new SSH key pair with safety checks.

    Existing keys are never overwritten; a numeric suffix is added instead.

    \b
    Examples:
      provision-key -e user@example.com
      provision-key -e user@example.com -n my_custom_key
      provision-key -e user@example.com -n github_key -t rsa
    """
    setup_logging(verbose)
    try:
        cfg = KeygenConfig(
            email=validate_email(email),
            key_type=validate_key_type(key_type),
            key_name=validate_key_name(key_name),
            add_to_agent=add_to_agent,
        )
    except InvalidArgument as e:
        raise click.UsageError(e.args[0], ctx=click.get_current_context()) from e
    print_banner("SSH Keygen", "Key Provisioner")
    provision_key(cfg, AgentHandle.from_environment(os.environ))


def main(argv: Optional[List[str]] = None) -> int:
    return invoke(cli, argv, prog_name="provision-key")


run = console_entry(main)

if __name__ == "__main__":
    run()
