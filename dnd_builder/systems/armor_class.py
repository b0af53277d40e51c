# ABOUTME: Armor class calculation from equipped armor, shield, ability modifiers and features
# ABOUTME: Pure function of the character's current state, recomputed on every call

from dnd_builder.core.abilities import Attribute
from dnd_builder.core.character import Character
from dnd_builder.rules.features import get_fighting_style
from dnd_builder.systems.inventory import Armor, ArmorCategory

BASE_AC = 10
DEFENSE_STYLE_BONUS = 1

UNARMORED_DEFENSE_MONK = "unarmored_defense_monk"
UNARMORED_DEFENSE_BARBARIAN = "unarmored_defense_barbarian"


def armor_contribution(armor: Armor, dex_modifier: int) -> int:
    """
    AC granted by a suit of body armor for a given Dexterity modifier.

    Light armor adds the full modifier, medium armor caps it, heavy armor
    ignores it.
    """
    if not armor.dex_bonus or armor.armor_category == ArmorCategory.HEAVY:
        return armor.base_ac
    if armor.max_dex_bonus is not None:
        return armor.base_ac + min(dex_modifier, armor.max_dex_bonus)
    return armor.base_ac + dex_modifier


def calculate_armor_class(character: Character) -> int:
    """
    Calculate a character's armor class.

    Rules:
    - Body armor: its base AC plus Dexterity as the armor allows
    - No body armor: 10 + Dexterity, or Unarmored Defense
      (monk adds Wisdom when no shield is carried; barbarian adds
      Constitution and may use a shield)
    - Shield: +2 (its base AC)
    - Defense fighting style: +1 while wearing body armor

    Args:
        character: Character to calculate for

    Returns:
        Armor class
    """
    dex_mod = character.get_ability_modifier(Attribute.DEXTERITY)
    body_armor = character.inventory.body_armor()
    shield = character.inventory.shield()

    if body_armor is not None:
        ac = armor_contribution(body_armor, dex_mod)
    elif character.has_feature(UNARMORED_DEFENSE_MONK) and shield is None:
        ac = BASE_AC + dex_mod + character.get_ability_modifier(Attribute.WISDOM)
    elif character.has_feature(UNARMORED_DEFENSE_BARBARIAN):
        ac = BASE_AC + dex_mod + character.get_ability_modifier(Attribute.CONSTITUTION)
    else:
        ac = BASE_AC + dex_mod

    if shield is not None:
        ac += shield.base_ac

    if body_armor is not None and get_fighting_style(character.get_feature("fighting_style")) == "defense":
        ac += DEFENSE_STYLE_BONUS

    return ac
