# ABOUTME: Unit tests for ability identities, modifiers and the builder error types
# ABOUTME: Tests code parsing, modifier rounding, roll serialization and error context

import pytest

from dnd_builder.core.abilities import AbilityRoll, AbilityScore, Attribute, calculate_modifier
from dnd_builder.core.errors import (
    BuilderError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
    is_not_found,
)


class TestAttribute:
    """Test the Attribute enumeration"""

    @pytest.mark.parametrize("code,expected", [
        ("STR", Attribute.STRENGTH),
        ("dex", Attribute.DEXTERITY),
        (" Con ", Attribute.CONSTITUTION),
        ("intelligence", Attribute.INTELLIGENCE),
        ("WISDOM", Attribute.WISDOM),
        ("cha", Attribute.CHARISMA),
    ])
    def test_from_code(self, code, expected):
        """Test codes and names map to abilities case-insensitively"""
        assert Attribute.from_code(code) == expected

    @pytest.mark.parametrize("code", ["", "LUCK", "ST", None])
    def test_unknown_code(self, code):
        """Test that unknown codes raise InvalidArgumentError"""
        with pytest.raises(InvalidArgumentError) as exc_info:
            Attribute.from_code(code)

        assert exc_info.value.context["code"] == code

    def test_six_abilities(self):
        """Test the closed set of abilities"""
        assert [a.code for a in Attribute] == ["STR", "DEX", "CON", "INT", "WIS", "CHA"]
        assert Attribute.STRENGTH.display_name == "Strength"


class TestModifiers:
    """Test ability modifier math"""

    @pytest.mark.parametrize("score,modifier", [
        (1, -5), (7, -2), (8, -1), (9, -1), (10, 0), (11, 0), (13, 1), (16, 3), (20, 5),
    ])
    def test_calculate_modifier(self, score, modifier):
        """Test modifiers round toward negative infinity"""
        assert calculate_modifier(score) == modifier

    def test_score_from_value(self):
        """Test building an AbilityScore from a raw score"""
        assert AbilityScore.from_score(15) == AbilityScore(score=15, modifier=2)


def test_ability_roll_roundtrip():
    """Test that a roll keeps its id, value and dice through serialization"""
    roll = AbilityRoll(id="roll_2", value=14, dice=[5, 5, 4, 1])

    assert AbilityRoll.from_dict(roll.to_dict()) == roll


class TestBuilderErrors:
    """Test the error taxonomy"""

    def test_context_and_operation(self):
        """Test attaching context and operation name"""
        error = NotFoundError("Character not found").with_context(character_id="c1")
        error.in_operation("get_character")
        error.in_operation("outer_call")

        assert error.context == {"character_id": "c1"}
        assert error.operation == "get_character"
        assert str(error) == "[get_character] Character not found"

    def test_cause_in_message(self):
        """Test that a wrapped cause shows in the message"""
        error = PersistenceError("Could not write vault file", cause=OSError("disk full"))

        assert str(error) == "Could not write vault file: disk full"

    def test_hierarchy(self):
        """Test that builder errors also match the matching builtin types"""
        assert isinstance(InvalidArgumentError("x"), ValueError)
        assert isinstance(NotFoundError("x"), LookupError)
        assert isinstance(InvalidStateError("x"), BuilderError)

    def test_is_not_found_follows_cause(self):
        """Test that is_not_found looks through wrapped errors"""
        wrapped = PersistenceError("lookup failed", cause=NotFoundError("missing"))

        assert is_not_found(wrapped)
        assert not is_not_found(InvalidStateError("nope"))
