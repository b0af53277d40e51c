# ABOUTME: Unit tests for the Rich display helpers
# ABOUTME: Tests choice tables, the character sheet, the list table and status output

import pytest
from rich.console import Console

from dnd_builder.core.abilities import AbilityScore, Attribute
from dnd_builder.core.character import Character, CharacterStatus
from dnd_builder.core.choice_resolver import ChoiceResolver
from dnd_builder.ui import rich_ui
from dnd_builder.ui.rich_ui import (
    create_character_list_table,
    create_character_sheet_table,
    create_choice_table,
    create_feature_choice_table,
    print_choices,
    print_error,
    print_status_message,
)


@pytest.fixture
def recording_console(monkeypatch):
    console = Console(record=True, width=160)
    monkeypatch.setattr(rich_ui, "console", console)
    return console


def render(table) -> str:
    console = Console(record=True, width=160)
    console.print(table)
    return console.export_text()


@pytest.fixture
def fighter_choices(catalog_rules):
    return ChoiceResolver(catalog_rules).resolve_equipment_choices(catalog_rules.get_class("fighter"))


class TestChoiceTables:
    """Test choice display"""

    def test_nested_option_adds_row(self, fighter_choices):
        """Test a nested option shows its secondary picker underneath"""
        weapons = fighter_choices[1]

        table = create_choice_table(weapons)
        text = render(table)

        assert table.row_count == 4
        assert "nested-0" in text
        assert "Longsword" in text

    def test_bundle_details(self, fighter_choices):
        """Test bundle items are listed next to the option"""
        text = render(create_choice_table(fighter_choices[0]))

        assert "Leather Armor and Longbow and 20x Arrow" in text
        assert "+ longbow, arrow" in text

    def test_feature_choice_table(self, catalog_rules):
        """Test every feature option gets a row"""
        choice = catalog_rules.feature_catalog.get_feature_choice("cleric", 1, "divine_domain")

        table = create_feature_choice_table(choice)

        assert table.row_count == 7

    def test_print_choices_empty(self, recording_console):
        """Test an empty choice list prints a status line"""
        print_choices("Equipment Choices", [])

        assert "No equipment choices" in recording_console.export_text()


class TestCharacterTables:
    """Test character display"""

    def make_character(self, catalog_rules):
        character = Character(
            id="c1", owner_id="u", realm_id="r", name="Brunhild",
            status=CharacterStatus.ACTIVE,
            species=catalog_rules.get_species("dwarf"),
            character_class=catalog_rules.get_class("fighter"),
            max_hit_points=13, current_hit_points=13, armor_class=16, speed=25,
        )
        character.attributes[Attribute.STRENGTH] = AbilityScore.from_score(16)
        character.attributes[Attribute.INTELLIGENCE] = AbilityScore.from_score(8)
        return character

    def test_character_sheet(self, catalog_rules):
        """Test scores, modifiers and missing abilities on the sheet"""
        text = render(create_character_sheet_table(self.make_character(catalog_rules)))

        assert "Brunhild" in text
        assert "16 (+3)" in text
        assert "8 (-1)" in text
        assert "13/13" in text
        assert "25 ft" in text

    def test_character_list(self, catalog_rules):
        """Test one row per character"""
        draft = Character(id="c2", owner_id="u", realm_id="r")

        table = create_character_list_table([self.make_character(catalog_rules), draft])
        text = render(table)

        assert table.row_count == 2
        assert "active" in text and "draft" in text


class TestStatusOutput:
    """Test status and error lines"""

    def test_status_message(self, recording_console):
        """Test the status text is printed"""
        print_status_message("Character saved", "success")

        assert "Character saved" in recording_console.export_text()

    def test_error_with_cause(self, recording_console):
        """Test an error prints its message and cause"""
        print_error("Invalid configuration", ValueError("bad storage"))

        text = recording_console.export_text()
        assert "ERROR" in text
        assert "bad storage" in text
