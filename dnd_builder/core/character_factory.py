# ABOUTME: Derivation rules for character creation: ability rolls, assignment, racial bonuses
# ABOUTME: Also hit points and the per-class consumable resource pools granted at finalization

import logging
from typing import Dict, List, Optional, Tuple

from dnd_builder.core.abilities import (
    AbilityRoll,
    AbilityScore,
    Attribute,
    calculate_modifier,
)
from dnd_builder.core.character import Character
from dnd_builder.core.dice import DiceRoller
from dnd_builder.rules.models import CharacterClass, Species
from dnd_builder.systems.resources import RecoveryType, ResourcePool
from dnd_builder.utils.logging_config import get_logging_config


logger = logging.getLogger(__name__)

ABILITY_ROLL_NOTATION = "4d6kh3"

DEFAULT_ABILITY_PRIORITIES = [
    Attribute.STRENGTH,
    Attribute.CONSTITUTION,
    Attribute.DEXTERITY,
    Attribute.WISDOM,
    Attribute.INTELLIGENCE,
    Attribute.CHARISMA,
]

# Level-1 spell slots by caster progression; half casters get theirs at level 2
SPELL_SLOTS_LEVEL_1 = {"full": 2, "half": 2, "pact": 1}
SPELL_SLOTS_MIN_LEVEL = {"full": 1, "half": 2, "pact": 1}


class CharacterFactory:
    """
    Derivation rules used while a character is being built.

    Handles:
    - Rolling ability scores (4d6 drop lowest)
    - Auto-assigning rolls to abilities based on class priorities
    - Deriving ability scores from rolls, assignments and racial bonuses
    - Calculating hit points
    - Initializing per-class resource pools
    """

    def __init__(self, dice_roller: Optional[DiceRoller] = None):
        """
        Initialize the character factory.

        Args:
            dice_roller: Optional DiceRoller instance (creates new one if not provided)
        """
        self.dice_roller = dice_roller if dice_roller is not None else DiceRoller()

    @staticmethod
    def roll_ability_score(dice_roller: DiceRoller) -> Tuple[int, List[int]]:
        """
        Roll 4d6, drop lowest, return score and dice rolled.

        Args:
            dice_roller: DiceRoller instance to use for rolling

        Returns:
            Tuple of (final_score, list_of_four_dice)

        Example:
            (15, [6, 5, 4, 2])
        """
        result = dice_roller.roll(ABILITY_ROLL_NOTATION)

        logging_config = get_logging_config()
        if logging_config and logging_config.debug_enabled:
            logging_config.log_dice_roll(
                ABILITY_ROLL_NOTATION, result.rolls, result.kept, result.total
            )

        return result.total, result.rolls

    @staticmethod
    def roll_ability_rolls(dice_roller: DiceRoller) -> List[AbilityRoll]:
        """
        Roll the six ability values for a new character.

        Roll ids are "roll_1" through "roll_6", in rolling order.
        """
        rolls = []
        for index in range(1, 7):
            value, dice = CharacterFactory.roll_ability_score(dice_roller)
            rolls.append(AbilityRoll(id=f"roll_{index}", value=value, dice=dice))
        return rolls

    def roll_abilities(self) -> List[AbilityRoll]:
        """Roll six ability values with this factory's dice roller."""
        return self.roll_ability_rolls(self.dice_roller)

    @staticmethod
    def auto_assign_abilities(
        rolls: List[AbilityRoll],
        character_class: Optional[CharacterClass] = None
    ) -> Dict[str, str]:
        """
        Auto-assign rolls to abilities based on class priorities.

        The highest roll goes to the class's most important ability, and so
        on down the list. Ties keep rolling order.

        Args:
            rolls: Rolled ability values
            character_class: Class whose ability_priorities drive the order

        Returns:
            Ability code -> roll id, e.g. {"STR": "roll_3", "CON": "roll_1", ...}
        """
        priorities = list(DEFAULT_ABILITY_PRIORITIES)
        if character_class and character_class.ability_priorities:
            priorities = list(character_class.ability_priorities)
            priorities += [a for a in DEFAULT_ABILITY_PRIORITIES if a not in priorities]

        ordered = sorted(rolls, key=lambda roll: roll.value, reverse=True)
        return {
            attribute.code: roll.id
            for attribute, roll in zip(priorities, ordered)
        }

    @staticmethod
    def derive_attributes(
        rolls: List[AbilityRoll],
        assignments: Dict[str, str],
        species: Optional[Species] = None
    ) -> Dict[Attribute, AbilityScore]:
        """
        Turn rolled values and their assignment into finished ability scores.

        Each score is the assigned roll's value plus every racial bonus for
        that ability. The result is a fresh map, so running this again with
        the same inputs gives the same scores.

        Args:
            rolls: The character's rolled values
            assignments: Ability code -> roll id
            species: Species whose ability bonuses apply, if chosen

        Returns:
            Map of ability to score and modifier, one entry per resolvable assignment

        Raises:
            InvalidArgumentError: If an assignment names an unknown ability code
        """
        values = {roll.id: roll.value for roll in rolls}
        bonuses = species.ability_bonuses if species else []

        attributes: Dict[Attribute, AbilityScore] = {}
        for code, roll_id in assignments.items():
            attribute = Attribute.from_code(code)
            if roll_id not in values:
                logger.debug(f"Assignment {code} -> {roll_id} references an unknown roll, skipping")
                continue

            score = values[roll_id]
            for bonus in bonuses:
                if bonus.attribute == attribute:
                    score += bonus.bonus

            attributes[attribute] = AbilityScore.from_score(score)

        return attributes

    @staticmethod
    def calculate_ability_modifier(score: int) -> int:
        """
        Calculate ability modifier from score.

        Args:
            score: Ability score (3-20)

        Returns:
            Modifier: (score - 10) // 2
        """
        return calculate_modifier(score)

    @staticmethod
    def calculate_hp(hit_die: int, con_modifier: int, level: int = 1) -> int:
        """
        Calculate maximum HP.

        Level 1 gets the full hit die; each later level adds the die's
        fixed average (half the die, plus one). Every level adds the
        Constitution modifier.

        Args:
            hit_die: Sides of the class hit die (e.g., 10)
            con_modifier: Constitution modifier
            level: Character level (default 1)

        Returns:
            Maximum HP, never below 1
        """
        hp = hit_die + con_modifier
        per_level = hit_die // 2 + 1 + con_modifier
        hp += per_level * max(0, level - 1)
        return max(1, hp)

    @staticmethod
    def initialize_class_resources(character: Character) -> List[ResourcePool]:
        """
        Create the consumable resource pools the character's class grants.

        Pools the character already has are left alone, so calling this
        again does not refill anything.

        Args:
            character: Character to add resource pools to

        Returns:
            The pools that were added
        """
        if character.character_class is None:
            return []

        class_key = character.character_class.key
        level = character.level
        cha_mod = character.get_ability_modifier(Attribute.CHARISMA)

        pools: List[ResourcePool] = []
        if class_key == "barbarian":
            pools.append(ResourcePool("rage", 2, 2, RecoveryType.LONG_REST))
        elif class_key == "fighter":
            pools.append(ResourcePool("second_wind", 1, 1, RecoveryType.SHORT_REST))
        elif class_key == "bard":
            uses = max(1, cha_mod)
            pools.append(ResourcePool("bardic_inspiration", uses, uses, RecoveryType.LONG_REST))
        elif class_key == "paladin":
            healing = 5 * level
            senses = max(1, 1 + cha_mod)
            pools.append(ResourcePool("lay_on_hands", healing, healing, RecoveryType.LONG_REST))
            pools.append(ResourcePool("divine_sense", senses, senses, RecoveryType.LONG_REST))

        progression = character.character_class.spellcasting
        if progression in SPELL_SLOTS_LEVEL_1 and level >= SPELL_SLOTS_MIN_LEVEL[progression]:
            slots = SPELL_SLOTS_LEVEL_1[progression]
            recovery = RecoveryType.SHORT_REST if progression == "pact" else RecoveryType.LONG_REST
            pools.append(ResourcePool("spell_slots_level_1", slots, slots, recovery))

        added = []
        for pool in pools:
            if character.get_resource_pool(pool.name) is None:
                character.add_resource_pool(pool)
                added.append(pool)
        return added
