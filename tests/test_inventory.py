# ABOUTME: Unit tests for equipment variants and the inventory
# ABOUTME: Tests adding items, equipping into slots, two-handed rules and serialization

import pytest

from dnd_builder.systems.inventory import (
    Armor,
    EquipmentCategory,
    EquipmentSlot,
    Gear,
    Inventory,
    Weapon,
    equipment_from_dict,
)


@pytest.fixture
def inventory():
    return Inventory()


class TestEquipmentFromDict:
    """Test building equipment variants from catalog entries"""

    def test_weapon(self, catalog_rules):
        """Test a catalog weapon becomes a Weapon"""
        longbow = catalog_rules.get_equipment("longbow")

        assert isinstance(longbow, Weapon)
        assert longbow.is_two_handed
        assert longbow.describe() == "1d8 piercing"

    def test_armor(self, catalog_rules):
        """Test armor and shields become Armor"""
        shield = catalog_rules.get_equipment("shield")
        scale = catalog_rules.get_equipment("scale-mail")

        assert isinstance(shield, Armor) and shield.is_shield
        assert shield.describe() == "+2 AC"
        assert scale.describe() == "14 + Dex (max 2)"

    def test_gear_default(self):
        """Test entries without a type are gear"""
        item = equipment_from_dict({"key": "rope", "name": "Rope"})

        assert isinstance(item, Gear)
        assert item.equipment_category == EquipmentCategory.GEAR

    def test_unknown_type(self):
        """Test that an unknown type is rejected"""
        with pytest.raises(ValueError):
            equipment_from_dict({"type": "vehicle", "key": "cart", "name": "Cart"})


class TestInventory:
    """Test the Inventory class"""

    def test_add_counted_items(self, inventory, catalog_rules):
        """Test that each unit is its own entry"""
        inventory.add_item(catalog_rules.get_equipment("arrow"), quantity=20)

        assert inventory.get_item_quantity("arrow") == 20
        assert len(inventory.get_items_by_category(EquipmentCategory.GEAR)) == 20
        assert inventory.has_item("arrow")

    def test_add_copies_item(self, inventory, catalog_rules):
        """Test that the catalog object is not shared"""
        dagger = catalog_rules.get_equipment("dagger")
        inventory.add_item(dagger)

        assert inventory.find_item("dagger") is not dagger

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_add_invalid_quantity(self, inventory, catalog_rules, quantity):
        """Test that non-positive quantities are rejected"""
        with pytest.raises(ValueError):
            inventory.add_item(catalog_rules.get_equipment("dagger"), quantity=quantity)

    def test_equip_uncarried_item(self, inventory):
        """Test that equipping something not carried does nothing"""
        assert inventory.equip_item("longsword") is None
        assert inventory.equipped == {}

    def test_equip_slots(self, inventory, catalog_rules):
        """Test armor, shield and one-handed weapon slots"""
        for key in ("chain-mail", "shield", "longsword", "explorers-pack"):
            inventory.add_item(catalog_rules.get_equipment(key))

        assert inventory.equip_item("chain-mail") == EquipmentSlot.BODY
        assert inventory.equip_item("shield") == EquipmentSlot.OFF_HAND
        assert inventory.equip_item("longsword") == EquipmentSlot.MAIN_HAND
        assert inventory.equip_item("explorers-pack") is None
        assert inventory.body_armor().key == "chain-mail"
        assert inventory.shield().key == "shield"

    def test_two_handed_clears_hands(self, inventory, catalog_rules):
        """Test a two-handed weapon displaces the shield, and a shield displaces it back"""
        for key in ("shield", "longsword", "greatsword"):
            inventory.add_item(catalog_rules.get_equipment(key))
        inventory.equip_item("shield")
        inventory.equip_item("longsword")

        assert inventory.equip_item("greatsword") == EquipmentSlot.TWO_HANDED
        assert inventory.shield() is None
        assert inventory.get_equipped_item(EquipmentSlot.MAIN_HAND) is None

        inventory.equip_item("shield")
        assert inventory.get_equipped_item(EquipmentSlot.TWO_HANDED) is None

    def test_serialization(self, inventory, catalog_rules):
        """Test that items and equipped slots survive to_dict/from_dict"""
        inventory.add_item(catalog_rules.get_equipment("leather-armor"))
        inventory.add_item(catalog_rules.get_equipment("arrow"), quantity=3)
        inventory.equip_item("leather-armor")

        restored = Inventory.from_dict(inventory.to_dict())

        assert restored.get_item_quantity("arrow") == 3
        assert restored.body_armor().base_ac == 11

    def test_string_representation(self, inventory, catalog_rules):
        """Test the empty and populated string forms"""
        assert str(inventory) == "Inventory: (empty)"

        inventory.add_item(catalog_rules.get_equipment("dagger"))
        assert "Dagger" in str(inventory)
