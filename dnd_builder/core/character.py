# ABOUTME: Character aggregate built up by the creation flow
# ABOUTME: Draft or active status, selected species/class, derived scores, proficiencies, gear, features

import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from dnd_builder.core.abilities import AbilityRoll, AbilityScore, Attribute
from dnd_builder.rules.models import (
    CharacterClass,
    Feature,
    FeatureCategory,
    Proficiency,
    ProficiencyCategory,
    Species,
)
from dnd_builder.systems.inventory import Inventory
from dnd_builder.systems.resources import ResourcePool

DEFAULT_CHARACTER_NAME = "Draft Character"


class CharacterStatus(Enum):
    DRAFT = "draft"
    ACTIVE = "active"


@dataclass
class Character:
    """
    A player character, either still being built (DRAFT) or ready for play (ACTIVE).

    While DRAFT any field may be partially populated. Once ACTIVE the
    character has one attribute entry per ability, non-zero hit points and
    a computed armor class, and the creation flow no longer touches it.
    """
    id: str
    owner_id: str
    realm_id: str
    name: str = DEFAULT_CHARACTER_NAME
    status: CharacterStatus = CharacterStatus.DRAFT
    level: int = 1
    species: Optional[Species] = None
    character_class: Optional[CharacterClass] = None
    ability_rolls: List[AbilityRoll] = field(default_factory=list)
    ability_assignments: Dict[str, str] = field(default_factory=dict)
    attributes: Dict[Attribute, AbilityScore] = field(default_factory=dict)
    proficiencies: Dict[ProficiencyCategory, List[Proficiency]] = field(default_factory=dict)
    inventory: Inventory = field(default_factory=Inventory)
    features: List[Feature] = field(default_factory=list)
    hit_die: int = 0
    max_hit_points: int = 0
    current_hit_points: int = 0
    armor_class: int = 0
    speed: int = 0
    resource_pools: Dict[str, ResourcePool] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def is_draft(self) -> bool:
        return self.status == CharacterStatus.DRAFT

    def get_ability_modifier(self, attribute: Attribute) -> int:
        """Modifier for an ability, 0 if it has not been derived yet."""
        score = self.attributes.get(attribute)
        return score.modifier if score else 0

    def get_feature(self, key: str) -> Optional[Feature]:
        for feature in self.features:
            if feature.key == key:
                return feature
        return None

    def has_feature(self, key: str) -> bool:
        return self.get_feature(key) is not None

    def add_resource_pool(self, pool: ResourcePool) -> None:
        self.resource_pools[pool.name] = pool

    def get_resource_pool(self, name: str) -> Optional[ResourcePool]:
        return self.resource_pools.get(name)

    def copy(self) -> "Character":
        return copy.deepcopy(self)

    def touch(self) -> None:
        self.updated_at = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the character for JSON storage."""
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "realm_id": self.realm_id,
            "name": self.name,
            "status": self.status.value,
            "level": self.level,
            "species": self.species.to_dict() if self.species else None,
            "character_class": self.character_class.to_dict() if self.character_class else None,
            "ability_rolls": [roll.to_dict() for roll in self.ability_rolls],
            "ability_assignments": dict(self.ability_assignments),
            "attributes": {
                attribute.code: {"score": score.score, "modifier": score.modifier}
                for attribute, score in self.attributes.items()
            },
            "proficiencies": {
                category.value: [p.to_dict() for p in entries]
                for category, entries in self.proficiencies.items()
            },
            "inventory": self.inventory.to_dict(),
            "features": [feature.to_dict() for feature in self.features],
            "hit_die": self.hit_die,
            "max_hit_points": self.max_hit_points,
            "current_hit_points": self.current_hit_points,
            "armor_class": self.armor_class,
            "speed": self.speed,
            "resource_pools": [pool.to_dict() for pool in self.resource_pools.values()],
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Character":
        """Rebuild a character from to_dict() output."""
        species = data.get("species")
        character_class = data.get("character_class")

        character = cls(
            id=data["id"],
            owner_id=data["owner_id"],
            realm_id=data["realm_id"],
            name=data.get("name", DEFAULT_CHARACTER_NAME),
            status=CharacterStatus(data.get("status", CharacterStatus.DRAFT.value)),
            level=data.get("level", 1),
            species=Species.from_dict(species) if species else None,
            character_class=CharacterClass.from_dict(character_class) if character_class else None,
            ability_rolls=[AbilityRoll.from_dict(r) for r in data.get("ability_rolls", [])],
            ability_assignments=dict(data.get("ability_assignments", {})),
            attributes={
                Attribute.from_code(code): AbilityScore(score=v["score"], modifier=v["modifier"])
                for code, v in data.get("attributes", {}).items()
            },
            proficiencies={
                ProficiencyCategory(category): [Proficiency.from_dict(p) for p in entries]
                for category, entries in data.get("proficiencies", {}).items()
            },
            inventory=Inventory.from_dict(data.get("inventory", {})),
            features=[Feature.from_dict(f) for f in data.get("features", [])],
            hit_die=data.get("hit_die", 0),
            max_hit_points=data.get("max_hit_points", 0),
            current_hit_points=data.get("current_hit_points", 0),
            armor_class=data.get("armor_class", 0),
            speed=data.get("speed", 0),
        )

        for pool_data in data.get("resource_pools", []):
            character.add_resource_pool(ResourcePool.from_dict(pool_data))

        if data.get("created_at"):
            character.created_at = datetime.fromisoformat(data["created_at"])
        if data.get("updated_at"):
            character.updated_at = datetime.fromisoformat(data["updated_at"])

        return character

    def __str__(self) -> str:
        species = self.species.name if self.species else "?"
        character_class = self.character_class.name if self.character_class else "?"
        return f"{self.name} ({species} {character_class} {self.level}, {self.status.value})"
