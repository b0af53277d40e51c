# ABOUTME: Rule definitions supplied by a rules provider: species, classes, proficiencies, features
# ABOUTME: Also the catalog's native choice-tree nodes (reference, counted, bundle, option set)

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from dnd_builder.core.abilities import Attribute

logger = logging.getLogger(__name__)


class ProficiencyCategory(Enum):
    ARMOR = "armor"
    WEAPON = "weapon"
    SAVING_THROW = "saving_throw"
    SKILL = "skill"
    TOOL = "tool"
    UNCLASSIFIED = "unclassified"


@dataclass
class Proficiency:
    key: str
    name: str
    category: ProficiencyCategory = ProficiencyCategory.UNCLASSIFIED

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "name": self.name, "category": self.category.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Proficiency":
        return cls(
            key=data["key"],
            name=data["name"],
            category=ProficiencyCategory(data.get("category", "unclassified")),
        )


class FeatureCategory(Enum):
    SPECIES = "species"
    CLASS = "class"


@dataclass
class Feature:
    """
    A named rule effect granted by a species or class.

    The metadata dictionary holds the user's sub-choice for features that
    need one (e.g., {"style": "dueling"}). Use the typed accessors in
    dnd_builder.rules.features rather than reading keys directly.
    """
    key: str
    name: str
    description: str = ""
    category: FeatureCategory = FeatureCategory.CLASS
    level: int = 1
    source: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def copy(self) -> "Feature":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "level": self.level,
            "source": self.source,
            "metadata": copy.deepcopy(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Feature":
        return cls(
            key=data["key"],
            name=data["name"],
            description=data.get("description", ""),
            category=FeatureCategory(data.get("category", "class")),
            level=data.get("level", 1),
            source=data.get("source", ""),
            metadata=dict(data.get("metadata") or {}),
        )


# Choice-tree nodes, in the shape the rules catalog expresses them

@dataclass
class ReferenceOption:
    """A single concrete item or proficiency."""
    key: str
    name: str


@dataclass
class CountedReferenceOption:
    """A concrete item granted several times ("20 arrows")."""
    count: int
    key: str
    name: str


@dataclass
class MultipleOption:
    """A bundle: every item in it is granted together."""
    key: str
    name: str
    items: List["ChoiceNode"] = field(default_factory=list)


@dataclass
class OptionSet:
    """
    A choice of `choose` entries from `options`.

    When the catalog expresses the choice as "any X", `category` names the
    equipment category to draw from (e.g., "martial-weapons") and `options`
    may be empty until the category is resolved.
    """
    name: str
    choose: int
    options: List["ChoiceNode"] = field(default_factory=list)
    category: Optional[str] = None
    choice_type: str = "equipment"


ChoiceNode = Union[ReferenceOption, CountedReferenceOption, MultipleOption, OptionSet]


def node_from_dict(data: Dict[str, Any]) -> ChoiceNode:
    """
    Build a choice-tree node from its catalog form.

    Raises:
        ValueError: If the node type is missing or unknown
    """
    node_type = data.get("type")
    if node_type == "reference":
        return ReferenceOption(key=data["key"], name=data["name"])
    if node_type == "counted_reference":
        return CountedReferenceOption(count=data["count"], key=data["key"], name=data["name"])
    if node_type == "multiple":
        return MultipleOption(
            key=data["key"],
            name=data["name"],
            items=parse_nodes(data.get("items", []), data["key"]),
        )
    if node_type == "choice":
        return OptionSet(
            name=data.get("name", ""),
            choose=data.get("choose", 1),
            options=parse_nodes(data.get("options", []), data.get("name") or "option set"),
            category=data.get("category"),
            choice_type=data.get("choice_type", "equipment"),
        )
    raise ValueError(f"Unknown choice node type: {node_type!r}")


def parse_nodes(entries: List[Any], owner: str) -> List[ChoiceNode]:
    """
    Build every well-formed node in a catalog list.

    A malformed entry is logged and dropped so the rest of the list stays usable.
    """
    nodes = []
    for index, entry in enumerate(entries):
        try:
            nodes.append(node_from_dict(entry))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Skipping malformed choice entry {index} of {owner}: {e!r}")
    return nodes


def parse_optional_node(entry: Any, owner: str) -> Optional[ChoiceNode]:
    if not entry:
        return None
    nodes = parse_nodes([entry], owner)
    return nodes[0] if nodes else None


def node_to_dict(node: ChoiceNode) -> Dict[str, Any]:
    if isinstance(node, ReferenceOption):
        return {"type": "reference", "key": node.key, "name": node.name}
    if isinstance(node, CountedReferenceOption):
        return {"type": "counted_reference", "count": node.count, "key": node.key, "name": node.name}
    if isinstance(node, MultipleOption):
        return {
            "type": "multiple",
            "key": node.key,
            "name": node.name,
            "items": [node_to_dict(item) for item in node.items],
        }
    if isinstance(node, OptionSet):
        data = {
            "type": "choice",
            "name": node.name,
            "choose": node.choose,
            "options": [node_to_dict(option) for option in node.options],
            "choice_type": node.choice_type,
        }
        if node.category:
            data["category"] = node.category
        return data
    raise ValueError(f"Not a choice node: {node!r}")


@dataclass
class AbilityBonus:
    attribute: Attribute
    bonus: int


@dataclass
class StartingEquipment:
    key: str
    quantity: int = 1


@dataclass
class Species:
    """
    Species (race) definition.

    Attributes:
        key: Catalog key (e.g., "elf")
        name: Display name
        speed: Walking speed in feet
        ability_bonuses: Bonuses added to assigned ability scores
        starting_proficiencies: Proficiencies every member of the species has
        proficiency_options: Optional extra proficiency choice (e.g., half-elf skills)
    """
    key: str
    name: str
    speed: int = 30
    size: str = "Medium"
    ability_bonuses: List[AbilityBonus] = field(default_factory=list)
    starting_proficiencies: List[Proficiency] = field(default_factory=list)
    proficiency_options: Optional[OptionSet] = None
    languages: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "speed": self.speed,
            "size": self.size,
            "ability_bonuses": [
                {"attribute": bonus.attribute.code, "bonus": bonus.bonus}
                for bonus in self.ability_bonuses
            ],
            "starting_proficiencies": [p.to_dict() for p in self.starting_proficiencies],
            "proficiency_options": (
                node_to_dict(self.proficiency_options) if self.proficiency_options else None
            ),
            "languages": list(self.languages),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Species":
        options = data.get("proficiency_options")
        return cls(
            key=data["key"],
            name=data["name"],
            speed=data.get("speed", 30),
            size=data.get("size", "Medium"),
            ability_bonuses=[
                AbilityBonus(Attribute.from_code(b["attribute"]), b["bonus"])
                for b in data.get("ability_bonuses", [])
            ],
            starting_proficiencies=[
                Proficiency.from_dict(p) for p in data.get("starting_proficiencies", [])
            ],
            proficiency_options=parse_optional_node(options, data["key"]),
            languages=list(data.get("languages", [])),
        )


@dataclass
class CharacterClass:
    """
    Class definition.

    Attributes:
        key: Catalog key (e.g., "fighter")
        name: Display name
        hit_die: Sides of the class hit die (e.g., 10 for a d10)
        proficiencies: Proficiencies granted at level 1 (armor, weapons, saves, tools)
        proficiency_choices: The class's "choose N skills" style choices
        starting_equipment: Items every member of the class starts with
        starting_equipment_choices: Equipment choices, possibly nested or bundled
        ability_priorities: Abilities in order of importance, for auto-assignment
        spellcasting: Caster progression ("full", "half", "pact") or None
    """
    key: str
    name: str
    hit_die: int
    proficiencies: List[Proficiency] = field(default_factory=list)
    proficiency_choices: List[OptionSet] = field(default_factory=list)
    starting_equipment: List[StartingEquipment] = field(default_factory=list)
    starting_equipment_choices: List[OptionSet] = field(default_factory=list)
    ability_priorities: List[Attribute] = field(default_factory=list)
    spellcasting: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "hit_die": self.hit_die,
            "proficiencies": [p.to_dict() for p in self.proficiencies],
            "proficiency_choices": [node_to_dict(c) for c in self.proficiency_choices],
            "starting_equipment": [
                {"key": item.key, "quantity": item.quantity} for item in self.starting_equipment
            ],
            "starting_equipment_choices": [
                node_to_dict(c) for c in self.starting_equipment_choices
            ],
            "ability_priorities": [a.code for a in self.ability_priorities],
            "spellcasting": self.spellcasting,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CharacterClass":
        return cls(
            key=data["key"],
            name=data["name"],
            hit_die=data["hit_die"],
            proficiencies=[Proficiency.from_dict(p) for p in data.get("proficiencies", [])],
            proficiency_choices=parse_nodes(data.get("proficiency_choices", []), data["key"]),
            starting_equipment=[
                StartingEquipment(key=item["key"], quantity=item.get("quantity", 1))
                for item in data.get("starting_equipment", [])
            ],
            starting_equipment_choices=parse_nodes(
                data.get("starting_equipment_choices", []), data["key"]
            ),
            ability_priorities=[
                Attribute.from_code(code) for code in data.get("ability_priorities", [])
            ],
            spellcasting=data.get("spellcasting"),
        )
