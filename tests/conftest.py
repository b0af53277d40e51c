# ABOUTME: Shared pytest fixtures for the character builder tests
# ABOUTME: Bundled rules catalog, in-memory stores, a recording event bus and a service wired from them

from typing import Dict, List

import pytest

from dnd_builder.core.abilities import AbilityRoll, Attribute
from dnd_builder.core.character_service import CharacterService
from dnd_builder.core.character_vault import InMemoryCharacterStore, InMemoryDraftStore
from dnd_builder.core.dice import DiceRoller
from dnd_builder.rules.features import FeatureCatalog
from dnd_builder.rules.loader import JsonRulesProvider
from dnd_builder.rules.models import AbilityBonus, CharacterClass, Feature, Proficiency, Species
from dnd_builder.rules.provider import RulesProvider
from dnd_builder.systems.inventory import Equipment
from dnd_builder.utils.events import Event, EventBus, EventType


class ExtendedRulesProvider(RulesProvider):
    """
    Bundled catalog plus extra species defined by a test.

    Lets tests use a species with exactly the bonuses they need without
    editing the shipped data.
    """

    def __init__(self, base: RulesProvider, extra_species: Dict[str, Species]):
        self.base = base
        self.extra_species = extra_species

    def get_species(self, key: str) -> Species:
        if key in self.extra_species:
            return self.extra_species[key]
        return self.base.get_species(key)

    def get_class(self, key: str) -> CharacterClass:
        return self.base.get_class(key)

    def get_proficiency(self, key: str) -> Proficiency:
        return self.base.get_proficiency(key)

    def get_equipment(self, key: str) -> Equipment:
        return self.base.get_equipment(key)

    def list_class_features(self, class_key: str, level: int) -> List[Feature]:
        return self.base.list_class_features(class_key, level)

    def list_species_features(self, species_key: str) -> List[Feature]:
        if species_key in self.extra_species:
            return []
        return self.base.list_species_features(species_key)

    def list_species(self) -> List[Species]:
        return self.base.list_species() + list(self.extra_species.values())

    def list_classes(self) -> List[CharacterClass]:
        return self.base.list_classes()

    def get_equipment_by_category(self, category: str) -> List[Equipment]:
        return self.base.get_equipment_by_category(category)

    @property
    def feature_catalog(self) -> FeatureCatalog:
        return self.base.feature_catalog


class EventRecorder:
    """Collects every event emitted on a bus."""

    def __init__(self, bus: EventBus):
        self.events: List[Event] = []
        for event_type in EventType:
            bus.subscribe(event_type, self.events.append)

    def of_type(self, event_type: EventType) -> List[Event]:
        return [e for e in self.events if e.type == event_type]


def make_rolls(*values: int) -> List[AbilityRoll]:
    """Ability rolls with ids roll_1..roll_N in the given order."""
    return [AbilityRoll(id=f"roll_{i}", value=v) for i, v in enumerate(values, start=1)]


STANDARD_ASSIGNMENTS = {
    "STR": "roll_3",
    "DEX": "roll_2",
    "CON": "roll_4",
    "INT": "roll_1",
    "WIS": "roll_5",
    "CHA": "roll_6",
}


@pytest.fixture(scope="session")
def catalog_rules():
    """Rules provider reading the bundled srd catalog"""
    return JsonRulesProvider()


@pytest.fixture
def sylvan_species():
    """Species granting +2 DEX and +1 INT, with no features or proficiencies"""
    return Species(
        key="sylvan",
        name="Sylvan",
        speed=30,
        ability_bonuses=[
            AbilityBonus(Attribute.DEXTERITY, 2),
            AbilityBonus(Attribute.INTELLIGENCE, 1),
        ],
    )


@pytest.fixture
def rules(catalog_rules, sylvan_species):
    return ExtendedRulesProvider(catalog_rules, {"sylvan": sylvan_species})


@pytest.fixture
def character_store():
    return InMemoryCharacterStore()


@pytest.fixture
def draft_store():
    return InMemoryDraftStore()


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def recorder(event_bus):
    return EventRecorder(event_bus)


@pytest.fixture
def service(rules, character_store, draft_store, event_bus):
    """Character service over in-memory stores and a seeded dice roller"""
    return CharacterService(
        rules=rules,
        character_store=character_store,
        draft_store=draft_store,
        event_bus=event_bus,
        dice_roller=DiceRoller(seed=42),
    )


@pytest.fixture
def draft(service):
    """A fresh draft for user-1 in realm-1"""
    return service.get_or_create_draft_character("user-1", "realm-1")