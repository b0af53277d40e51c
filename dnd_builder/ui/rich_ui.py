# ABOUTME: Rich UI utilities for the character builder CLI
# ABOUTME: Panels, status lines, choice tables and the character sheet

from pathlib import Path
from typing import Dict, List, Optional

from rich import box
from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.style import Style
from rich.table import Table

from dnd_builder.core.abilities import Attribute
from dnd_builder.core.character import Character
from dnd_builder.core.choice_resolver import Choice
from dnd_builder.rules.features import FeatureChoice
from dnd_builder.utils.logging_config import init_logging


console = Console()


def init_console(debug_mode: bool = False, log_dir: Optional[Path] = None) -> Console:
    """
    Set up logging and the shared console.

    In debug mode the console also writes to the session log file.

    Args:
        debug_mode: Whether debug logging is enabled
        log_dir: Directory for log files (defaults to ./logs)

    Returns:
        The console now used by every print helper
    """
    global console
    logging_config = init_logging(debug_enabled=debug_mode, log_dir=log_dir)
    console = logging_config.create_console()
    return console


def print_banner(title: str = "D&D 5E Character Builder", version: str = "0.1.0", color: str = "cyan") -> None:
    """Display a styled banner with title and optional version.

    Args:
        title: Banner title
        version: Optional version string
        color: Color scheme (blue, green, cyan, magenta)
    """
    text = title
    if version:
        text += f"\nVersion {version}"

    panel = Panel(
        Align.center(text),
        style=Style(color=color, bold=True),
        expand=False,
        box=box.DOUBLE,
        padding=(1, 3)
    )
    console.print(panel)


def print_status_message(message: str, message_type: str = "info") -> None:
    """Print a styled status message.

    Args:
        message: Message text
        message_type: Type of message (info, success, warning, error)
    """
    colors = {
        "info": "blue",
        "success": "green",
        "warning": "yellow",
        "error": "red",
    }

    symbols = {
        "info": "ℹ",
        "success": "✓",
        "warning": "⚠",
        "error": "✗",
    }

    color = colors.get(message_type, colors["info"])
    symbol = symbols.get(message_type, "•")
    style = Style(color=color, bold=(message_type == "error"))

    console.print(f"[{color}]{symbol}[/{color}] {message}", style=style)


def print_error(message: str, error: Optional[Exception] = None) -> None:
    console.print(f"[bold red]✗ ERROR:[/bold red] {message}")
    if error:
        console.print(f"[dim red]{str(error)}[/dim red]")


def print_section(title: str, content: str = "") -> None:
    panel = Panel(
        content,
        title=f"[bold cyan]{title}[/bold cyan]",
        style="cyan",
        expand=False
    )
    console.print(panel)


def create_choice_table(choice: Choice) -> Table:
    """Create a table listing one choice's options.

    Nested options show the secondary picker they need underneath.

    Args:
        choice: Resolved choice to display

    Returns:
        Formatted Rich Table
    """
    table = Table(
        title=f"{choice.name} [dim]({choice.description})[/dim]",
        style="yellow",
        show_header=True,
        header_style="bold magenta"
    )
    table.add_column("Key", style="bold cyan")
    table.add_column("Option", style="bold")
    table.add_column("Details", style="dim")

    for option in choice.options:
        details = option.description
        if option.bundle_items:
            details = f"{details} (+ {', '.join(option.bundle_items)})".strip()
        table.add_row(option.key, option.name, details)
        if option.nested is not None:
            nested_names = ", ".join(o.name for o in option.nested.options)
            table.add_row("", f"[dim]↳ {option.nested.description}[/dim]", f"[dim]{nested_names}[/dim]")

    return table


def print_choices(title: str, choices: List[Choice]) -> None:
    if not choices:
        print_status_message(f"No {title.lower()}", "info")
        return
    print_section(title, f"{len(choices)} choice(s)")
    for choice in choices:
        console.print(create_choice_table(choice))


def create_feature_choice_table(choice: FeatureChoice) -> Table:
    title = choice.name if choice.choose == 1 else f"{choice.name} (choose {choice.choose})"
    table = Table(title=title, style="yellow", show_header=True, header_style="bold magenta")
    table.add_column("Key", style="bold cyan")
    table.add_column("Option", style="bold")
    table.add_column("Description", style="white")

    for option in choice.options:
        table.add_row(option.key, option.name, option.description)
    return table


def _signed(value: int) -> str:
    return f"+{value}" if value >= 0 else str(value)


def create_character_sheet_table(character: Character) -> Table:
    """Create a styled table for character sheet display.

    Args:
        character: Character to show

    Returns:
        Formatted Rich Table
    """
    table = Table(title="CHARACTER SHEET", style="magenta", show_header=False)
    table.add_column("Attribute", style="bold cyan", width=20)
    table.add_column("Value", style="white")

    table.add_row("Name", character.name)
    table.add_row("Species", character.species.name if character.species else "-")
    table.add_row("Class", character.character_class.name if character.character_class else "-")
    table.add_row("Level", str(character.level))
    table.add_row("Status", character.status.value)

    table.add_row("", "")
    for attribute in Attribute:
        score = character.attributes.get(attribute)
        if score is None:
            table.add_row(attribute.code, "-")
        else:
            table.add_row(attribute.code, f"{score.score} ({_signed(score.modifier)})")

    table.add_row("", "")
    table.add_row("HP", f"{character.current_hit_points}/{character.max_hit_points}")
    table.add_row("AC", str(character.armor_class))
    table.add_row("Speed", f"{character.speed} ft")

    proficiencies = [
        p.name for entries in character.proficiencies.values() for p in entries
    ]
    if proficiencies:
        table.add_row("", "")
        table.add_row("Proficiencies", ", ".join(proficiencies))

    if character.features:
        table.add_row("", "")
        for feature in character.features:
            choice = ", ".join(
                ", ".join(v) if isinstance(v, list) else f"{v}" for v in feature.metadata.values()
            )
            table.add_row(feature.name, f"[dim]{choice}[/dim]" if choice else "")

    equipped = [item.name for item in character.inventory.equipped.values()]
    if equipped:
        table.add_row("", "")
        table.add_row("Equipped", ", ".join(equipped))

    if character.resource_pools:
        table.add_row("", "")
        for pool in character.resource_pools.values():
            table.add_row(pool.name, f"{pool.current}/{pool.maximum}")

    return table


def create_character_list_table(characters: List[Character]) -> Table:
    table = Table(title="CHARACTERS", style="cyan", show_header=True, header_style="bold magenta")
    table.add_column("Name", style="bold")
    table.add_column("Species", style="dim")
    table.add_column("Class", style="dim")
    table.add_column("Level", justify="center")
    table.add_column("HP", justify="center")
    table.add_column("AC", justify="center")
    table.add_column("Status", justify="right")

    for character in characters:
        status_colors: Dict[str, str] = {"active": "green", "draft": "yellow"}
        color = status_colors.get(character.status.value, "white")
        table.add_row(
            character.name,
            character.species.name if character.species else "-",
            character.character_class.name if character.character_class else "-",
            str(character.level),
            f"{character.current_hit_points}/{character.max_hit_points}",
            str(character.armor_class),
            f"[{color}]{character.status.value}[/{color}]",
        )
    return table
