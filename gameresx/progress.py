"""Line-by-line progress display for generation runs.

Prints new lines instead of in-place terminal updates so the output stays
readable when piped or captured. All output goes to stderr to keep stdout free
for --json output.
"""

from rich.console import Console

from gameresx.models import DimensionInfo

# Progress console writes to stderr
_console = Console(stderr=True)


def print_header(title: str, model: str, count: int = 1):
    """Print the run header."""
    _console.print()
    _console.print("━" * 55, style="cyan")
    _console.print(f" 🎨 {title}", style="bold cyan")
    _console.print("━" * 55, style="cyan")
    _console.print()
    _console.print(f" [dim]Model:[/dim]  {model}")
    _console.print(f" [dim]Images:[/dim] {count}")
    _console.print()


def print_item(current: int, total: int, path: str):
    """Print a progress line before an asset is processed."""
    # Progress bar 20 chars wide
    filled = int(current / total * 20) if total else 20
    bar = "█" * filled + "░" * (20 - filled)
    _console.print(f" [cyan]{bar}[/cyan] {current:>3}/{total:<3} {path}")


def print_dimensions(info: DimensionInfo):
    ow, oh = info.original
    gw, gh = info.generated
    if info.needs_resize:
        _console.print(f"   [yellow]↔[/yellow] resized {gw}x{gh} → {ow}x{oh}")
    else:
        _console.print(f"   [green]✓[/green] size matches ({ow}x{oh})")


def print_error(message: str):
    """Print an error message."""
    _console.print()
    _console.print("━" * 55, style="red")
    _console.print(" ❌ ERROR", style="bold red")
    _console.print("━" * 55, style="red")
    _console.print()
    _console.print(f" {message}", style="red")
    _console.print()


def print_summary(success: int, failed: int, messages: list[str]):
    """Print the end-of-run summary."""
    style = "green" if failed == 0 else "yellow"
    _console.print()
    _console.print("━" * 55, style=style)
    _console.print(f" ✨ DONE: {success} succeeded, {failed} failed", style=f"bold {style}")
    _console.print("━" * 55, style=style)
    _console.print()
    for message in messages:
        if message.startswith("✗"):
            _console.print(f" [red]{message}[/red]")
        else:
            _console.print(f" [dim]{message}[/dim]")
    _console.print()
