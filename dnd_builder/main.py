# ABOUTME: Command-line entry point for the D&D 5E character builder
# ABOUTME: Wires config, rules, stores and service, then lists choices or builds a character

import argparse
import sys
from typing import Dict, List, Optional, Sequence

from dnd_builder.config import STORAGE_MEMORY, BuilderConfig
from dnd_builder.core.character import Character
from dnd_builder.core.character_service import CharacterService, DraftUpdate
from dnd_builder.core.character_vault import (
    InMemoryCharacterStore,
    InMemoryDraftStore,
    JsonCharacterStore,
)
from dnd_builder.core.choice_resolver import Choice
from dnd_builder.core.dice import DiceRoller
from dnd_builder.core.errors import BuilderError
from dnd_builder.rules.features import FeatureChoice
from dnd_builder.rules.loader import JsonRulesProvider
from dnd_builder.ui.rich_ui import (
    create_character_list_table,
    create_character_sheet_table,
    create_feature_choice_table,
    init_console,
    print_banner,
    print_choices,
    print_error,
    print_status_message,
)
from dnd_builder.ui import rich_ui
from dnd_builder.utils.events import EventBus
from dnd_builder.utils.logging_config import get_logging_config


DEFAULT_OWNER = "local"
DEFAULT_REALM = "default"


def parse_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="D&D 5E Character Builder",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  dnd-builder choices --species elf --class fighter
  dnd-builder create --species dwarf --class fighter --name Brunhild --seed 7
  dnd-builder create --species elf --class ranger --name Lia --skills skill-stealth skill-survival skill-nature
  dnd-builder list
        """
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode with file logging and detailed error traces"
    )
    parser.add_argument("--owner", default=DEFAULT_OWNER, help="Owner id (default: local)")
    parser.add_argument("--realm", default=DEFAULT_REALM, help="Realm id (default: default)")
    parser.add_argument(
        "--version",
        action="version",
        version="D&D 5E Character Builder v0.1.0"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    choices_parser = subparsers.add_parser("choices", help="Show the choices for a species and class")
    choices_parser.add_argument("--species", required=True, help="Species key, e.g. elf")
    choices_parser.add_argument("--class", dest="class_key", required=True, help="Class key, e.g. fighter")

    create_parser = subparsers.add_parser("create", help="Build and finalize a character")
    create_parser.add_argument("--species", required=True, help="Species key, e.g. elf")
    create_parser.add_argument("--class", dest="class_key", required=True, help="Class key, e.g. fighter")
    create_parser.add_argument("--name", required=True, help="Character name")
    create_parser.add_argument("--seed", type=int, help="Seed for reproducible ability rolls")
    create_parser.add_argument(
        "--skills", nargs="*", default=None,
        help="Proficiency keys to select (default: the first options of each choice)"
    )
    create_parser.add_argument(
        "--equipment", nargs="*", default=None,
        help="Option key per equipment choice, in order (default: the first option)"
    )
    create_parser.add_argument(
        "--feature", nargs="*", default=None, metavar="FEATURE=OPTION[,OPTION]",
        help="Feature sub-choices, e.g. fighting_style=dueling or expertise=skill-stealth,thieves-tools"
    )

    subparsers.add_parser("list", help="List the owner's characters")

    return parser.parse_args(argv)


def create_character_service(
    config: BuilderConfig,
    event_bus: Optional[EventBus] = None,
    dice_roller: Optional[DiceRoller] = None
) -> CharacterService:
    """
    Build a character service from configuration.

    Args:
        config: Builder configuration
        event_bus: Optional bus for builder events
        dice_roller: Optional dice roller (seeded for reproducible rolls)

    Returns:
        Ready-to-use CharacterService
    """
    rules = JsonRulesProvider(config.data_path)
    if config.storage == STORAGE_MEMORY:
        characters = InMemoryCharacterStore()
    else:
        characters = JsonCharacterStore(config.vault_path)
    return CharacterService(
        rules=rules,
        character_store=characters,
        draft_store=InMemoryDraftStore(),
        event_bus=event_bus,
        dice_roller=dice_roller,
        session_ttl=config.session_ttl,
    )


def default_proficiency_selection(choices: List[Choice]) -> List[str]:
    """Take the first offered options of each proficiency choice."""
    selected: List[str] = []
    for choice in choices:
        picks = [key for key in choice.option_keys() if key not in selected]
        selected.extend(picks[:choice.choose])
    return selected


def equipment_selection(choices: List[Choice], option_keys: Optional[List[str]]) -> List[str]:
    """
    Expand one option per equipment choice into equipment keys.

    Nested options take the first item of their secondary choice.

    Raises:
        ValueError: If an option key is not offered by its choice
    """
    option_keys = option_keys or []
    granted: List[str] = []
    for index, choice in enumerate(choices):
        if not choice.options:
            continue
        key = option_keys[index] if index < len(option_keys) else choice.options[0].key
        option = choice.get_option(key)
        if option is None:
            raise ValueError(
                f"'{key}' is not an option for {choice.name}; expected one of {', '.join(choice.option_keys())}"
            )
        nested: List[str] = []
        if option.nested is not None and option.nested.options:
            nested = [o.key for o in option.nested.options[:option.nested.choose]]
        granted.extend(option.equipment_keys(nested))
    return granted


def parse_feature_selections(entries: Optional[List[str]]) -> Dict[str, List[str]]:
    """Parse FEATURE=OPTION[,OPTION...] entries."""
    selections: Dict[str, List[str]] = {}
    for entry in entries or []:
        feature_key, sep, options = entry.partition("=")
        option_keys = [key.strip() for key in options.split(",") if key.strip()]
        if not sep or not feature_key.strip() or not option_keys:
            raise ValueError(f"Feature selection must look like FEATURE=OPTION[,OPTION], got '{entry}'")
        selections[feature_key.strip()] = option_keys
    return selections


def create_character(
    service: CharacterService,
    args: argparse.Namespace
) -> Character:
    """
    Run the whole creation flow non-interactively.

    Flow:
        1. Get or create the owner's draft
        2. Set species and class
        3. Roll abilities and assign them by class priority
        4. Apply proficiency and equipment selections
        5. Make any pending feature choices
        6. Name and finalize
    """
    draft = service.get_or_create_draft_character(args.owner, args.realm)
    draft = service.update_draft_character(
        draft.id, DraftUpdate(species_key=args.species, class_key=args.class_key)
    )

    draft = service.roll_ability_scores(draft.id, auto_assign=True)
    for roll in draft.ability_rolls:
        print_status_message(f"Rolled {roll.value} {roll.dice}", "info")

    resolved = service.resolve_choices(args.species, args.class_key)
    if args.skills is None:
        skills = default_proficiency_selection(resolved.proficiency_choices)
    else:
        service.resolver.validate_proficiency_selections(
            draft.species, draft.character_class, args.skills
        )
        skills = args.skills
    equipment = equipment_selection(resolved.equipment_choices, args.equipment)
    service.update_draft_character(draft.id, DraftUpdate(proficiencies=skills, equipment=equipment))

    selections = parse_feature_selections(args.feature)
    pending: List[FeatureChoice] = service.get_pending_feature_choices(draft.id)
    for choice in pending:
        option_keys = selections.get(choice.feature_key)
        if option_keys is None:
            option_keys = choice.option_keys()[:choice.choose]
            rich_ui.console.print(create_feature_choice_table(choice))
            print_status_message(f"{choice.name}: defaulting to {', '.join(option_keys)}", "warning")
        service.select_feature_options(draft.id, choice.feature_key, option_keys)

    return service.finalize_character_with_name(draft.id, args.name)


def main(argv: Optional[Sequence[str]] = None) -> None:
    """
    Main entry point for the character builder.

    Flow:
        1. Load configuration (including .env)
        2. Parse command-line arguments
        3. Initialize debug logging (if enabled)
        4. Build the service
        5. Run the requested command
    """
    try:
        config = BuilderConfig.from_env()
    except BuilderError as e:
        print_error("Invalid configuration", e)
        sys.exit(1)

    args = parse_arguments(argv)
    debug = args.debug or config.debug
    init_console(debug_mode=debug)

    if debug:
        logging_config = get_logging_config()
        if logging_config and logging_config.get_log_file_path():
            print_status_message(
                f"Debug mode enabled. Logging to: {logging_config.get_log_file_path()}",
                "info"
            )

    print_banner("D&D 5E Character Builder", version="0.1.0", color="cyan")

    event_bus = EventBus()

    try:
        dice_roller = DiceRoller(seed=getattr(args, "seed", None))
        service = create_character_service(config, event_bus=event_bus, dice_roller=dice_roller)

        if args.command == "choices":
            resolved = service.resolve_choices(args.species, args.class_key)
            print_choices("Proficiency Choices", resolved.proficiency_choices)
            print_choices("Equipment Choices", resolved.equipment_choices)
        elif args.command == "create":
            character = create_character(service, args)
            print_status_message(f"{character.name} is ready for adventure!", "success")
            rich_ui.console.print(create_character_sheet_table(character))
        elif args.command == "list":
            characters = service.list_characters(args.owner, args.realm)
            if characters:
                rich_ui.console.print(create_character_list_table(characters))
            else:
                print_status_message("No characters yet", "info")

    except KeyboardInterrupt:
        rich_ui.console.print("\n\n[yellow]Cancelled.[/yellow]")
        sys.exit(0)
    except (BuilderError, ValueError) as e:
        print_error(str(e))
        sys.exit(1)
    except Exception as e:
        print_error("An unexpected error occurred", e)
        if debug:
            import traceback
            traceback.print_exc()
        sys.exit(1)
    finally:
        logging_config = get_logging_config()
        if logging_config:
            logging_config.close()


if __name__ == "__main__":
    main()
