# ABOUTME: Resource pool system for tracking limited-use class abilities
# ABOUTME: Manages spell slots, rage uses, second wind, lay on hands and similar pools

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class RecoveryType(Enum):
    """When a resource pool refills."""
    SHORT_REST = "short_rest"
    LONG_REST = "long_rest"


@dataclass
class ResourcePool:
    """
    Resource pool for tracking limited-use abilities.

    Examples:
    - Spell slots: name="spell_slots_level_1", current=2, maximum=2
    - Rage: name="rage", current=2, maximum=2
    - Second Wind: name="second_wind", current=1, maximum=1
    """
    name: str
    current: int
    maximum: int
    recovery: RecoveryType = RecoveryType.LONG_REST

    def use(self, amount: int = 1) -> bool:
        """
        Use resources from the pool.

        Args:
            amount: Number of resources to use (default 1)

        Returns:
            True if successful, False if insufficient resources or invalid amount
        """
        if amount <= 0:
            return False
        if self.current >= amount:
            self.current -= amount
            return True
        return False

    def recover(self, amount: Optional[int] = None) -> int:
        """
        Recover resources. If amount is None, recover all.

        Returns:
            Amount actually recovered
        """
        if amount is None:
            amount = self.maximum - self.current

        recovered = min(amount, self.maximum - self.current)
        self.current += recovered
        return recovered

    def is_available(self, amount: int = 1) -> bool:
        return self.current >= amount

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "current": self.current,
            "maximum": self.maximum,
            "recovery": self.recovery.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResourcePool":
        return cls(
            name=data["name"],
            current=data["current"],
            maximum=data["maximum"],
            recovery=RecoveryType(data.get("recovery", RecoveryType.LONG_REST.value)),
        )

    def __str__(self) -> str:
        return f"{self.name}: {self.current}/{self.maximum}"
