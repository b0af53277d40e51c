# ABOUTME: Unit tests for the dice rolling system
# ABOUTME: Tests dice notation parsing, keep-highest pools and seeded rolling

import pytest
from dnd_builder.core.dice import DiceRoller, DiceRoll


class TestDiceRoller:
    """Test the DiceRoller class"""

    def setup_method(self):
        """Set up test fixtures"""
        self.roller = DiceRoller()

    def test_roll_single_die(self):
        """Test rolling a single die"""
        for _ in range(100):
            result = self.roller.roll("1d20")
            assert 1 <= result.total <= 20
            assert len(result.rolls) == 1

    def test_roll_with_modifiers(self):
        """Test rolling with positive and negative modifiers"""
        plus = self.roller.roll("2d6+3")
        minus = self.roller.roll("1d20-3")

        assert plus.modifier == 3
        assert 5 <= plus.total <= 15
        assert minus.modifier == -3
        assert -2 <= minus.total <= 17

    def test_implicit_single_die(self):
        """Test that d8 means 1d8"""
        assert self.roller.parse_notation("d8") == (1, 8, None, 0)

    def test_ability_roll_keeps_highest_three(self):
        """Test 4d6kh3 drops the lowest die"""
        for _ in range(50):
            result = self.roller.roll("4d6kh3")
            assert len(result.rolls) == 4
            assert len(result.kept) == 3
            assert result.total == sum(sorted(result.rolls)[1:])
            assert 3 <= result.total <= 18

    def test_dropped_dice(self):
        """Test that dropped lists the discarded die"""
        roll = DiceRoll(rolls=[2, 6, 5, 4], modifier=0, notation="4d6kh3", kept=[6, 5, 4])

        assert roll.dropped == [2]
        assert roll.total == 15

    def test_kept_defaults_to_all_rolls(self):
        """Test that a plain roll keeps every die"""
        roll = DiceRoll(rolls=[3, 4], modifier=1, notation="2d6+1")

        assert roll.kept == [3, 4]
        assert roll.total == 8

    def test_seeded_rollers_repeat(self):
        """Test that two rollers with the same seed roll the same dice"""
        a = DiceRoller(seed=7)
        b = DiceRoller(seed=7)

        assert [a.roll("4d6kh3").rolls for _ in range(6)] == [b.roll("4d6kh3").rolls for _ in range(6)]

    def test_die_size(self):
        """Test extracting the die size from notation"""
        assert DiceRoller.die_size("1d10") == 10
        assert DiceRoller.die_size("2d6+1") == 6

    @pytest.mark.parametrize("notation", ["", "abc", "0d6", "1d0", "3d6kh4", "2d6+"])
    def test_invalid_notation(self, notation):
        """Test that malformed notation raises ValueError"""
        with pytest.raises(ValueError):
            self.roller.roll(notation)

    def test_string_representation(self):
        """Test DiceRoll string format"""
        roll = DiceRoll(rolls=[4, 3], modifier=2, notation="2d6+2")

        assert str(roll) == "2d6+2: [4, 3] + 2 = 9"
