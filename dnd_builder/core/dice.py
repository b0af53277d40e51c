# ABOUTME: Dice notation parsing and rolling used during character creation
# ABOUTME: Supports NdS+M notation, keep-highest pools for ability rolls, and seeded rollers

import re
import random
from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass
class DiceRoll:
    """
    Result of a dice roll.

    Attributes:
        rolls: Individual die results, in the order rolled
        modifier: Flat modifier added to the kept dice
        notation: Notation the roll was made from (e.g., "4d6kh3")
        kept: Die results that count toward the total (all rolls by default)
    """
    rolls: List[int]
    modifier: int
    notation: str
    kept: List[int] = field(default_factory=list)

    def __post_init__(self):
        if not self.kept:
            self.kept = list(self.rolls)

    @property
    def total(self) -> int:
        """Sum of the kept dice plus the modifier."""
        return sum(self.kept) + self.modifier

    @property
    def dropped(self) -> List[int]:
        """Die results that were rolled but not kept."""
        remaining = list(self.kept)
        dropped = []
        for value in self.rolls:
            if value in remaining:
                remaining.remove(value)
            else:
                dropped.append(value)
        return dropped

    def __str__(self) -> str:
        return f"{self.notation}: {self.rolls} + {self.modifier} = {self.total}"


class DiceRoller:
    """
    Rolls dice from standard notation.

    Supports:
    - Standard notation: 1d20, 2d6, 1d10+2, 2d6-1
    - Implicit single die: d8
    - Keep-highest pools: 4d6kh3 (used for 4d6-drop-lowest ability rolls)
    """

    DICE_PATTERN = re.compile(r'^(\d*)d(\d+)(?:kh(\d+))?(([+-])(\d+))?$', re.IGNORECASE)

    def __init__(self, seed: Optional[int] = None):
        """
        Initialize the dice roller.

        Args:
            seed: Optional random seed for reproducible results (mainly for testing)
        """
        self.random = random.Random(seed) if seed is not None else random.Random()

    def roll(self, notation: str) -> DiceRoll:
        """
        Roll dice according to notation.

        Args:
            notation: Dice notation string (e.g., "1d10", "4d6kh3", "2d6+3")

        Returns:
            DiceRoll with every die rolled, the dice kept, and the modifier

        Raises:
            ValueError: If the notation is invalid
        """
        count, sides, keep, modifier = self.parse_notation(notation)

        rolls = [self._roll_die(sides) for _ in range(count)]
        kept = sorted(rolls, reverse=True)[:keep] if keep is not None else list(rolls)

        return DiceRoll(rolls=rolls, modifier=modifier, notation=notation, kept=kept)

    @classmethod
    def parse_notation(cls, notation: str) -> Tuple[int, int, Optional[int], int]:
        """
        Parse dice notation into its components.

        Args:
            notation: Dice notation string (e.g., "4d6kh3+1")

        Returns:
            Tuple of (count, sides, keep_highest or None, modifier)

        Raises:
            ValueError: If notation is empty or malformed
        """
        if not notation:
            raise ValueError("Dice notation cannot be empty")

        match = cls.DICE_PATTERN.match(notation.strip())
        if not match:
            raise ValueError(f"Invalid dice notation: {notation}")

        count = int(match.group(1)) if match.group(1) else 1
        sides = int(match.group(2))
        keep = int(match.group(3)) if match.group(3) else None

        if count < 1 or sides < 1:
            raise ValueError(f"Invalid dice notation: {notation}")
        if keep is not None and not 1 <= keep <= count:
            raise ValueError(f"Cannot keep {keep} dice out of {count}: {notation}")

        modifier = 0
        if match.group(4):
            value = int(match.group(6))
            modifier = value if match.group(5) == '+' else -value

        return count, sides, keep, modifier

    @classmethod
    def die_size(cls, notation: str) -> int:
        """
        Get the number of sides of the die in a notation ("1d10" -> 10).

        Raises:
            ValueError: If the notation is invalid
        """
        _, sides, _, _ = cls.parse_notation(notation)
        return sides

    def _roll_die(self, sides: int) -> int:
        """Roll a single die with the given number of sides."""
        return self.random.randint(1, sides)
