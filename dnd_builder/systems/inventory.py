# ABOUTME: Equipment variants (weapon, armor, gear) and the character inventory
# ABOUTME: Handles item storage by category, equipping into slots, and serialization

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class EquipmentCategory(Enum):
    """Inventory buckets for equipment"""
    WEAPON = "weapon"
    ARMOR = "armor"
    GEAR = "gear"


class EquipmentSlot(Enum):
    """Slots an item can be equipped into"""
    MAIN_HAND = "main_hand"
    OFF_HAND = "off_hand"
    TWO_HANDED = "two_handed"
    BODY = "body"


class WeaponCategory(Enum):
    SIMPLE = "simple"
    MARTIAL = "martial"


class ArmorCategory(Enum):
    LIGHT = "light"
    MEDIUM = "medium"
    HEAVY = "heavy"
    SHIELD = "shield"


@dataclass
class Equipment:
    """
    Common shape shared by every equipment variant.

    The variant set is closed: Weapon, Armor and Gear. Code that needs
    type-specific fields matches on the concrete class with isinstance.
    """
    key: str
    name: str

    @property
    def equipment_category(self) -> EquipmentCategory:
        return EquipmentCategory.GEAR

    def describe(self) -> str:
        """Short description shown next to the item in choice menus."""
        return ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.equipment_category.value,
            "key": self.key,
            "name": self.name,
        }


@dataclass
class Weapon(Equipment):
    damage_dice: str = "1d4"
    damage_type: str = "bludgeoning"
    weapon_category: WeaponCategory = WeaponCategory.SIMPLE
    weapon_range: str = "melee"
    properties: List[str] = field(default_factory=list)

    @property
    def equipment_category(self) -> EquipmentCategory:
        return EquipmentCategory.WEAPON

    @property
    def is_two_handed(self) -> bool:
        return "two-handed" in self.properties

    def describe(self) -> str:
        return f"{self.damage_dice} {self.damage_type}"

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "damage_dice": self.damage_dice,
            "damage_type": self.damage_type,
            "weapon_category": self.weapon_category.value,
            "weapon_range": self.weapon_range,
            "properties": list(self.properties),
        })
        return data


@dataclass
class Armor(Equipment):
    armor_category: ArmorCategory = ArmorCategory.LIGHT
    base_ac: int = 10
    dex_bonus: bool = True
    max_dex_bonus: Optional[int] = None

    @property
    def equipment_category(self) -> EquipmentCategory:
        return EquipmentCategory.ARMOR

    @property
    def is_shield(self) -> bool:
        return self.armor_category == ArmorCategory.SHIELD

    def describe(self) -> str:
        if self.is_shield:
            return f"+{self.base_ac} AC"
        if not self.dex_bonus:
            return f"{self.base_ac} AC"
        if self.max_dex_bonus is not None:
            return f"{self.base_ac} + Dex (max {self.max_dex_bonus})"
        return f"{self.base_ac} + Dex"

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "armor_category": self.armor_category.value,
            "base_ac": self.base_ac,
            "dex_bonus": self.dex_bonus,
            "max_dex_bonus": self.max_dex_bonus,
        })
        return data


@dataclass
class Gear(Equipment):
    pass


def equipment_from_dict(data: Dict[str, Any]) -> Equipment:
    """
    Build the right equipment variant from its serialized form.

    Args:
        data: Dictionary produced by Equipment.to_dict() (or a catalog entry)

    Returns:
        Weapon, Armor or Gear instance

    Raises:
        ValueError: If the type is not a known equipment category
    """
    category = EquipmentCategory(data.get("type", EquipmentCategory.GEAR.value))

    if category == EquipmentCategory.WEAPON:
        return Weapon(
            key=data["key"],
            name=data["name"],
            damage_dice=data.get("damage_dice", "1d4"),
            damage_type=data.get("damage_type", "bludgeoning"),
            weapon_category=WeaponCategory(data.get("weapon_category", "simple")),
            weapon_range=data.get("weapon_range", "melee"),
            properties=list(data.get("properties", [])),
        )
    if category == EquipmentCategory.ARMOR:
        return Armor(
            key=data["key"],
            name=data["name"],
            armor_category=ArmorCategory(data.get("armor_category", "light")),
            base_ac=data.get("base_ac", 10),
            dex_bonus=data.get("dex_bonus", True),
            max_dex_bonus=data.get("max_dex_bonus"),
        )
    return Gear(key=data["key"], name=data["name"])


class Inventory:
    """
    Carried equipment grouped by category, plus what is equipped.

    Each unit of an item is its own entry, so "20x Arrow" is twenty
    arrow entries in the gear bucket.
    """

    def __init__(self):
        self.items: Dict[EquipmentCategory, List[Equipment]] = {}
        self.equipped: Dict[EquipmentSlot, Equipment] = {}

    def add_item(self, equipment: Equipment, quantity: int = 1) -> None:
        """
        Add an item to the inventory.

        Args:
            equipment: Item to add (copied, so catalog objects are never shared)
            quantity: Number of units to add (default 1)

        Raises:
            ValueError: If quantity is negative or zero
        """
        if quantity <= 0:
            raise ValueError("Quantity must be positive")

        bucket = self.items.setdefault(equipment.equipment_category, [])
        for _ in range(quantity):
            bucket.append(copy.deepcopy(equipment))

    def has_item(self, key: str) -> bool:
        return self.get_item_quantity(key) > 0

    def get_item_quantity(self, key: str) -> int:
        return sum(
            1 for bucket in self.items.values() for item in bucket if item.key == key
        )

    def find_item(self, key: str) -> Optional[Equipment]:
        """Return the first carried item with this key, or None."""
        for bucket in self.items.values():
            for item in bucket:
                if item.key == key:
                    return item
        return None

    def get_items_by_category(self, category: EquipmentCategory) -> List[Equipment]:
        return list(self.items.get(category, []))

    def equip_item(self, key: str) -> Optional[EquipmentSlot]:
        """
        Equip a carried item into the slot its type calls for.

        Body armor goes to BODY, shields to OFF_HAND, two-handed weapons to
        TWO_HANDED (clearing both hands), other weapons to MAIN_HAND.

        Args:
            key: Key of a carried item

        Returns:
            The slot used, or None if the item is not carried or is gear
        """
        item = self.find_item(key)
        if item is None:
            return None

        if isinstance(item, Armor):
            slot = EquipmentSlot.OFF_HAND if item.is_shield else EquipmentSlot.BODY
            if slot == EquipmentSlot.OFF_HAND:
                self.equipped.pop(EquipmentSlot.TWO_HANDED, None)
        elif isinstance(item, Weapon):
            if item.is_two_handed:
                slot = EquipmentSlot.TWO_HANDED
                self.equipped.pop(EquipmentSlot.MAIN_HAND, None)
                self.equipped.pop(EquipmentSlot.OFF_HAND, None)
            else:
                slot = EquipmentSlot.MAIN_HAND
                self.equipped.pop(EquipmentSlot.TWO_HANDED, None)
        else:
            return None

        self.equipped[slot] = item
        return slot

    def unequip_item(self, slot: EquipmentSlot) -> Optional[Equipment]:
        return self.equipped.pop(slot, None)

    def get_equipped_item(self, slot: EquipmentSlot) -> Optional[Equipment]:
        return self.equipped.get(slot)

    def body_armor(self) -> Optional[Armor]:
        item = self.equipped.get(EquipmentSlot.BODY)
        return item if isinstance(item, Armor) else None

    def shield(self) -> Optional[Armor]:
        item = self.equipped.get(EquipmentSlot.OFF_HAND)
        if isinstance(item, Armor) and item.is_shield:
            return item
        return None

    def is_empty(self) -> bool:
        return not any(self.items.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": {
                category.value: [item.to_dict() for item in bucket]
                for category, bucket in self.items.items()
            },
            "equipped": {
                slot.value: item.to_dict() for slot, item in self.equipped.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Inventory":
        inventory = cls()
        for category, entries in data.get("items", {}).items():
            inventory.items[EquipmentCategory(category)] = [
                equipment_from_dict(entry) for entry in entries
            ]
        for slot, entry in data.get("equipped", {}).items():
            inventory.equipped[EquipmentSlot(slot)] = equipment_from_dict(entry)
        return inventory

    def __str__(self) -> str:
        if self.is_empty():
            return "Inventory: (empty)"

        lines = ["Inventory:"]
        if self.equipped:
            lines.append("  Equipped:")
            for slot, item in self.equipped.items():
                lines.append(f"    {slot.value}: {item.name}")

        lines.append("  Items:")
        for category in EquipmentCategory:
            counts: Dict[str, int] = {}
            names: Dict[str, str] = {}
            for item in self.items.get(category, []):
                counts[item.key] = counts.get(item.key, 0) + 1
                names[item.key] = item.name
            for key, count in counts.items():
                qty = f" x{count}" if count > 1 else ""
                lines.append(f"    {names[key]}{qty}")

        return "\n".join(lines)
