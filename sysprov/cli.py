"""
Entry point plumbing shared by the click commands.
"""

import sys
from typing import Callable, List, Optional

import click

from sysprov.console import (
    console,
    print_error,
    print_warning,
    setup_signal_handlers,
)
from sysprov.errors import InvalidArgument, ProvisionError

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


def invoke(
    command: click.Command, argv: Optional[List[str]], prog_name: str
) -> int:
    """
    Run a click command and translate its outcome into an exit status.

    Usage errors are reported as InvalidArgument with status 1 rather than
    click's default of 2.
    """
    try:
        rv = command.main(args=argv, prog_name=prog_name, standalone_mode=False)
    except click.UsageError as e:
        print_error(str(InvalidArgument(e.format_message())))
        if e.ctx is not None:
            console.print(e.ctx.get_usage(), highlight=False)
            console.print(f"Try '{prog_name} -h' for help.", highlight=False)
        return 1
    except click.Abort:
        print_warning("Operation cancelled by user.")
        return 130
    except ProvisionError as e:
        print_error(str(e))
        return e.exit_code
    except Exception as e:
        print_error(f"Unexpected error: {e}")
        console.print_exception()
        return 1
    return rv if isinstance(rv, int) else 0


def console_entry(main: Callable[[Optional[List[str]]], int]) -> Callable[[], None]:
    """Wrap main(argv) as a console-script entry point."""

    def run() -> None:
        setup_signal_handlers()
        sys.exit(main(None))

    return run
