# ABOUTME: Ability identities, ability scores and rolled ability values
# ABOUTME: The closed STR/DEX/CON/INT/WIS/CHA enumeration and its modifier math

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

from dnd_builder.core.errors import InvalidArgumentError


class Attribute(Enum):
    """The six abilities, valued by their short code"""
    STRENGTH = "STR"
    DEXTERITY = "DEX"
    CONSTITUTION = "CON"
    INTELLIGENCE = "INT"
    WISDOM = "WIS"
    CHARISMA = "CHA"

    @property
    def code(self) -> str:
        return self.value

    @property
    def display_name(self) -> str:
        return self.name.capitalize()

    @classmethod
    def from_code(cls, code: str) -> "Attribute":
        """
        Map a short code ("STR") or full name ("strength") to an Attribute.

        Args:
            code: Ability code or name, case-insensitive

        Returns:
            The matching Attribute

        Raises:
            InvalidArgumentError: If the code names no ability
        """
        normalized = (code or "").strip().upper()
        for attribute in cls:
            if normalized in (attribute.value, attribute.name):
                return attribute
        raise InvalidArgumentError(f"Unknown ability code: {code!r}").with_context(code=code)


def calculate_modifier(score: int) -> int:
    """
    Ability modifier for a score, rounding toward negative infinity.

    Examples: 10 -> 0, 16 -> 3, 9 -> -1, 7 -> -2
    """
    return (score - 10) // 2


@dataclass
class AbilityScore:
    score: int
    modifier: int

    @classmethod
    def from_score(cls, score: int) -> "AbilityScore":
        return cls(score=score, modifier=calculate_modifier(score))


@dataclass
class AbilityRoll:
    """
    A rolled ability value with an identity independent of where it is assigned.

    Attributes:
        id: Stable roll identifier (e.g., "roll_1")
        value: Total of the kept dice
        dice: The individual d6 results that produced the value, if known
    """
    id: str
    value: int
    dice: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "value": self.value, "dice": list(self.dice)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AbilityRoll":
        return cls(id=data["id"], value=data["value"], dice=list(data.get("dice", [])))
