# ABOUTME: Applies newly selected proficiency keys to a character's proficiency set
# ABOUTME: Skills replace the previous selection; every other category accumulates without duplicates

import logging
from typing import Dict, Iterable, List

from dnd_builder.core.errors import NotFoundError
from dnd_builder.rules.models import Proficiency, ProficiencyCategory
from dnd_builder.rules.provider import RulesProvider


logger = logging.getLogger(__name__)

ProficiencyMap = Dict[ProficiencyCategory, List[Proficiency]]


class ProficiencyMerger:
    """
    Merges selected proficiencies into an existing proficiency map.

    Skills come from a single "choose N" picker that the user may revisit,
    so a selection containing skills replaces the whole skill list. Armor,
    weapon, saving throw, tool and unclassified proficiencies come from
    several sources and are only ever added to.
    """

    REPLACE_CATEGORIES = (ProficiencyCategory.SKILL,)

    def __init__(self, rules: RulesProvider):
        self.rules = rules

    def resolve(self, keys: Iterable[str]) -> List[Proficiency]:
        """Look up proficiency keys, logging and skipping unknown ones."""
        resolved = []
        for key in keys:
            try:
                resolved.append(self.rules.get_proficiency(key))
            except NotFoundError:
                logger.warning(f"Unknown proficiency '{key}', skipping")
        return resolved

    def merge(self, existing: ProficiencyMap, keys: Iterable[str]) -> ProficiencyMap:
        """
        Apply newly selected proficiency keys.

        Args:
            existing: Current proficiencies by category (not modified)
            keys: Selected proficiency keys

        Returns:
            New proficiency map
        """
        merged: ProficiencyMap = {
            category: list(entries) for category, entries in existing.items()
        }

        selected: ProficiencyMap = {}
        for proficiency in self.resolve(keys):
            selected.setdefault(proficiency.category, []).append(proficiency)

        for category, entries in selected.items():
            if category in self.REPLACE_CATEGORIES:
                merged[category] = []
            for proficiency in entries:
                self.add_proficiency(merged, proficiency)

        return merged

    @staticmethod
    def add_proficiency(proficiencies: ProficiencyMap, proficiency: Proficiency) -> bool:
        """
        Add a proficiency unless one with the same key is already present.

        Returns:
            True if it was added
        """
        if ProficiencyMerger.has_proficiency(proficiencies, proficiency.key):
            return False
        proficiencies.setdefault(proficiency.category, []).append(proficiency)
        return True

    @staticmethod
    def has_proficiency(proficiencies: ProficiencyMap, key: str) -> bool:
        return any(
            proficiency.key == key
            for entries in proficiencies.values()
            for proficiency in entries
        )
