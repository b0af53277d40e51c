# ABOUTME: Unit tests for merging selected proficiencies into a character's set
# ABOUTME: Tests skill replacement, accumulation of other categories and unknown keys

import logging

import pytest

from dnd_builder.rules.models import Proficiency, ProficiencyCategory
from dnd_builder.systems.proficiencies import ProficiencyMerger


@pytest.fixture
def merger(catalog_rules):
    return ProficiencyMerger(catalog_rules)


def keys(proficiencies, category):
    return [p.key for p in proficiencies.get(category, [])]


class TestProficiencyMerger:
    """Test the ProficiencyMerger class"""

    def test_skills_replace(self, merger):
        """Test that a new skill selection replaces the previous one"""
        first = merger.merge({}, ["skill-athletics", "skill-history"])
        second = merger.merge(first, ["skill-perception", "skill-survival"])

        assert keys(second, ProficiencyCategory.SKILL) == ["skill-perception", "skill-survival"]

    def test_other_categories_accumulate(self, merger):
        """Test that armor and tools are added to, never replaced"""
        first = merger.merge({}, ["light-armor", "alchemists-supplies"])
        second = merger.merge(first, ["shields", "light-armor"])

        assert keys(second, ProficiencyCategory.ARMOR) == ["light-armor", "shields"]
        assert keys(second, ProficiencyCategory.TOOL) == ["alchemists-supplies"]

    def test_skill_update_keeps_other_categories(self, merger):
        """Test that replacing skills leaves weapons alone"""
        first = merger.merge({}, ["simple-weapons", "skill-athletics"])
        second = merger.merge(first, ["skill-stealth"])

        assert keys(second, ProficiencyCategory.WEAPON) == ["simple-weapons"]
        assert keys(second, ProficiencyCategory.SKILL) == ["skill-stealth"]

    def test_existing_map_is_not_modified(self, merger):
        """Test that merge returns a new map"""
        existing = merger.merge({}, ["skill-athletics"])
        merger.merge(existing, ["skill-history"])

        assert keys(existing, ProficiencyCategory.SKILL) == ["skill-athletics"]

    def test_unknown_keys_are_skipped(self, merger, caplog):
        """Test that an unknown key is logged and ignored"""
        with caplog.at_level(logging.WARNING):
            merged = merger.merge({}, ["skill-juggling", "skill-athletics"])

        assert keys(merged, ProficiencyCategory.SKILL) == ["skill-athletics"]
        assert "skill-juggling" in caplog.text

    def test_add_and_has_proficiency(self):
        """Test the static helpers"""
        proficiencies = {}
        lute = Proficiency(key="lute", name="Lute", category=ProficiencyCategory.TOOL)

        assert ProficiencyMerger.add_proficiency(proficiencies, lute)
        assert not ProficiencyMerger.add_proficiency(proficiencies, lute)
        assert ProficiencyMerger.has_proficiency(proficiencies, "lute")
        assert not ProficiencyMerger.has_proficiency(proficiencies, "drum")
