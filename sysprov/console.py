"""
Shared Nord-themed console, banner, message helpers, logging and signal setup.
"""

import logging
import shutil
import signal
import sys
from typing import Any, List, Optional

import pyfiglet
from rich import box
from rich.align import Align
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text
from rich.theme import Theme
from rich.traceback import install as install_rich_traceback

from sysprov import APP_NAME, VERSION

LOGGER_NAME: str = "sysprov"


# ----------------------------------------------------------------
# Nord-Themed Colors and Theme Setup
# ----------------------------------------------------------------
class NordColors:
    """Nord color palette definitions for consistent UI styling."""

    POLAR_NIGHT_3: str = "#434C5E"
    SNOW_STORM_1: str = "#D8DEE9"
    SNOW_STORM_2: str = "#E5E9F0"
    FROST_1: str = "#8FBCBB"
    FROST_2: str = "#88C0D0"
    FROST_3: str = "#81A1C1"
    FROST_4: str = "#5E81AC"
    RED: str = "#BF616A"
    YELLOW: str = "#EBCB8B"
    GREEN: str = "#A3BE8C"

    @classmethod
    def get_frost_gradient(cls, steps: int = 4) -> List[str]:
        """Returns a gradient using the frost color palette."""
        frosts = [cls.FROST_1, cls.FROST_2, cls.FROST_3, cls.FROST_4]
        return frosts[:steps]


nord_theme = Theme(
    {
        "banner": f"bold {NordColors.FROST_2}",
        "header": f"bold {NordColors.FROST_2}",
        "info": NordColors.FROST_2,
        "warning": NordColors.YELLOW,
        "error": NordColors.RED,
        "debug": NordColors.POLAR_NIGHT_3,
        "success": NordColors.GREEN,
    }
)

console = Console(theme=nord_theme)

install_rich_traceback(console=console, show_locals=False)


# ----------------------------------------------------------------
# UI Helper Functions
# ----------------------------------------------------------------
def create_header(title: str, subtitle: Optional[str] = None) -> Panel:
    """
    Generate an ASCII art header with frost gradient styling using Pyfiglet.
    The font shrinks with the terminal width; each line gets its own color.
    """
    term_width, _ = shutil.get_terminal_size((80, 24))
    fonts: List[str] = ["slant", "small", "mini"]
    if term_width < 60:
        fonts = fonts[1:]

    ascii_art = ""
    for font in fonts:
        try:
            fig = pyfiglet.Figlet(font=font, width=min(term_width - 10, 120))
            ascii_art = fig.renderText(title)
        except pyfiglet.FigletError:
            continue
        if ascii_art.strip():
            break

    ascii_lines = [line for line in ascii_art.splitlines() if line.strip()]
    colors = NordColors.get_frost_gradient()
    combined_text = Text()
    for i, line in enumerate(ascii_lines):
        combined_text.append(Text(line, style=f"bold {colors[i % len(colors)]}"))
        if i < len(ascii_lines) - 1:
            combined_text.append("\n")

    return Panel(
        Align.center(combined_text),
        border_style=NordColors.FROST_1,
        padding=(1, 2),
        title=Text(f"{APP_NAME} v{VERSION}", style=f"bold {NordColors.SNOW_STORM_2}"),
        title_align="right",
        subtitle=Text(subtitle, style=f"bold {NordColors.SNOW_STORM_1}")
        if subtitle
        else None,
        subtitle_align="center",
        box=box.ROUNDED,
    )


def print_banner(title: str, subtitle: Optional[str] = None) -> None:
    console.print(create_header(title, subtitle))


def print_message(
    text: str, style: str = NordColors.FROST_2, prefix: str = "•"
) -> None:
    """Print a styled message with a prefix."""
    console.print(f"[{style}]{prefix} {escape(text)}[/{style}]", highlight=False)


def print_success(message: str) -> None:
    print_message(message, NordColors.GREEN, "✓")


def print_warning(message: str) -> None:
    print_message(message, NordColors.YELLOW, "⚠")


def print_error(message: str) -> None:
    print_message(message, NordColors.RED, "✗")


def print_info(message: str) -> None:
    print_message(message, NordColors.FROST_3, "ℹ")


def print_step(message: str) -> None:
    print_message(message, NordColors.FROST_2, "→")


def print_dry_run(message: str) -> None:
    """Report a mutation that dry-run mode replaced with a description."""
    print_message(f"[DRY-RUN] Would {message}", NordColors.FROST_4, "•")


def print_section(title: str) -> None:
    """Print a section header."""
    console.print()
    console.print(f"[bold {NordColors.FROST_3}]{title}[/]")
    console.print(f"[{NordColors.FROST_3}]{'─' * len(title)}[/]")


def print_command(command: str) -> None:
    """Print a copy-pasteable command line."""
    console.print(f"  [bold {NordColors.SNOW_STORM_1}]{escape(command)}[/]", highlight=False)


def display_panel(
    message: Any, style: str = NordColors.FROST_2, title: Optional[str] = None
) -> None:
    """Display a styled panel. Plain strings are rendered without markup."""
    body = Text(message, style=style) if isinstance(message, str) else message
    console.print(
        Panel(
            body,
            border_style=style,
            padding=(1, 2),
            title=f"[bold {style}]{title}[/]" if title else None,
            box=box.ROUNDED,
        )
    )


# ----------------------------------------------------------------
# Logger Setup
# ----------------------------------------------------------------
def setup_logging(verbose: bool = False) -> logging.Logger:
    """Route the package logger through a RichHandler on the shared console."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    for h in logger.handlers[:]:
        logger.removeHandler(h)

    handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        show_path=False,
        markup=False,
    )
    handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.addHandler(handler)
    logger.propagate = False
    return logger


# ----------------------------------------------------------------
# Signal Handling
# ----------------------------------------------------------------
def handle_signal(signum: int, frame: Any) -> None:
    """Handle termination signals gracefully."""
    sig_name = signal.Signals(signum).name
    print_warning(f"Received {sig_name}. Exiting...")
    sys.exit(130 if signum == signal.SIGINT else 128 + signum)


def setup_signal_handlers() -> None:
    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, handle_signal)
