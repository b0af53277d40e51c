# ABOUTME: Feature templates per species/class and the catalog of feature sub-choices
# ABOUTME: Typed accessors for the user choices recorded in feature metadata

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from dnd_builder.core.errors import InvalidArgumentError, NotFoundError
from dnd_builder.rules.models import Feature, FeatureCategory


logger = logging.getLogger(__name__)


class FeatureChoiceType(Enum):
    """
    Kinds of feature sub-choices, valued by the metadata key each one records.
    """
    FIGHTING_STYLE = "style"
    DIVINE_DOMAIN = "domain"
    FAVORED_ENEMY = "enemy_type"
    NATURAL_EXPLORER = "terrain_type"
    EXPERTISE = "skills"
    SORCEROUS_ORIGIN = "origin"
    OTHERWORLDLY_PATRON = "patron"

    @property
    def metadata_key(self) -> str:
        return self.value

    @classmethod
    def from_name(cls, name: str) -> "FeatureChoiceType":
        try:
            return cls[name.upper()]
        except KeyError:
            raise InvalidArgumentError(f"Unknown feature choice type: {name!r}")


@dataclass
class FeatureOption:
    key: str
    name: str
    description: str = ""


@dataclass
class FeatureChoice:
    """
    A sub-choice a feature needs before the character is fully built.

    Attributes:
        feature_key: Key of the feature whose metadata records the choice
        choice_type: What kind of choice this is
        name: Display name
        description: Display description
        choose: How many options to pick
        options: The options on offer
    """
    feature_key: str
    choice_type: FeatureChoiceType
    name: str
    description: str = ""
    choose: int = 1
    options: List[FeatureOption] = field(default_factory=list)

    def get_option(self, key: str) -> Optional[FeatureOption]:
        for option in self.options:
            if option.key == key:
                return option
        return None

    def option_keys(self) -> List[str]:
        return [option.key for option in self.options]


# Typed metadata accessors

def get_choice(feature: Optional[Feature], choice_type: FeatureChoiceType) -> Optional[str]:
    """Read the recorded sub-choice of a feature, or None if not made yet."""
    if feature is None or not feature.metadata:
        return None
    value = feature.metadata.get(choice_type.metadata_key)
    return value if value else None


def set_choice(feature: Feature, choice_type: FeatureChoiceType, value: str) -> None:
    """Record a sub-choice on a feature."""
    if not value:
        raise InvalidArgumentError(
            f"A {choice_type.name.lower()} selection cannot be empty"
        ).with_context(feature_key=feature.key)
    feature.metadata[choice_type.metadata_key] = value


def get_choices(feature: Optional[Feature], choice_type: FeatureChoiceType) -> List[str]:
    """Read a multi-pick sub-choice. A single recorded pick comes back as a one-item list."""
    if feature is None or not feature.metadata:
        return []
    value = feature.metadata.get(choice_type.metadata_key)
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


def set_choices(feature: Feature, choice_type: FeatureChoiceType, values: List[str]) -> None:
    if not values or not all(values):
        raise InvalidArgumentError(
            f"A {choice_type.name.lower()} selection cannot be empty"
        ).with_context(feature_key=feature.key)
    feature.metadata[choice_type.metadata_key] = list(values)


def get_fighting_style(feature: Optional[Feature]) -> Optional[str]:
    return get_choice(feature, FeatureChoiceType.FIGHTING_STYLE)


def set_fighting_style(feature: Feature, style: str) -> None:
    set_choice(feature, FeatureChoiceType.FIGHTING_STYLE, style)


def get_divine_domain(feature: Optional[Feature]) -> Optional[str]:
    return get_choice(feature, FeatureChoiceType.DIVINE_DOMAIN)


def set_divine_domain(feature: Feature, domain: str) -> None:
    set_choice(feature, FeatureChoiceType.DIVINE_DOMAIN, domain)


def get_favored_enemy(feature: Optional[Feature]) -> Optional[str]:
    return get_choice(feature, FeatureChoiceType.FAVORED_ENEMY)


def set_favored_enemy(feature: Feature, enemy_type: str) -> None:
    set_choice(feature, FeatureChoiceType.FAVORED_ENEMY, enemy_type)


def get_favored_terrain(feature: Optional[Feature]) -> Optional[str]:
    return get_choice(feature, FeatureChoiceType.NATURAL_EXPLORER)


def set_favored_terrain(feature: Feature, terrain_type: str) -> None:
    set_choice(feature, FeatureChoiceType.NATURAL_EXPLORER, terrain_type)


def get_expertise(feature: Optional[Feature]) -> List[str]:
    return get_choices(feature, FeatureChoiceType.EXPERTISE)


def set_expertise(feature: Feature, proficiency_keys: List[str]) -> None:
    set_choices(feature, FeatureChoiceType.EXPERTISE, proficiency_keys)


def get_sorcerous_origin(feature: Optional[Feature]) -> Optional[str]:
    return get_choice(feature, FeatureChoiceType.SORCEROUS_ORIGIN)


def set_sorcerous_origin(feature: Feature, origin: str) -> None:
    set_choice(feature, FeatureChoiceType.SORCEROUS_ORIGIN, origin)


def get_patron(feature: Optional[Feature]) -> Optional[str]:
    return get_choice(feature, FeatureChoiceType.OTHERWORLDLY_PATRON)


def set_patron(feature: Feature, patron: str) -> None:
    set_choice(feature, FeatureChoiceType.OTHERWORLDLY_PATRON, patron)


class FeatureCatalog:
    """
    Feature templates and feature sub-choices, read from features.json.

    Layout of the file:
        {
          "classes": {"fighter": [<feature>, ...], ...},
          "species": {"elf": [<feature>, ...], ...},
          "choices": [
            {"type": "fighting_style", "feature_key": "fighting_style",
             "classes": {"fighter": 1, "paladin": 2}, "options": [...], ...}
          ]
        }
    """

    def __init__(self, data: Dict[str, Any]):
        self._class_features: Dict[str, List[Feature]] = {
            class_key: [self._template(entry, FeatureCategory.CLASS) for entry in entries]
            for class_key, entries in data.get("classes", {}).items()
        }
        self._species_features: Dict[str, List[Feature]] = {
            species_key: [self._template(entry, FeatureCategory.SPECIES) for entry in entries]
            for species_key, entries in data.get("species", {}).items()
        }
        self._choices: List[Dict[str, Any]] = list(data.get("choices", []))

    @classmethod
    def from_file(cls, path: Path) -> "FeatureCatalog":
        """
        Load the catalog from a JSON file.

        Raises:
            FileNotFoundError: If the file does not exist
        """
        with open(path, 'r', encoding='utf-8') as f:
            return cls(json.load(f))

    @staticmethod
    def _template(entry: Dict[str, Any], category: FeatureCategory) -> Feature:
        return Feature(
            key=entry["key"],
            name=entry["name"],
            description=entry.get("description", ""),
            category=category,
            level=entry.get("level", 1 if category == FeatureCategory.CLASS else 0),
            source=entry.get("source", ""),
        )

    def class_features(self, class_key: str, level: int) -> List[Feature]:
        """Copies of the class's feature templates available at or below the level."""
        return [
            feature.copy()
            for feature in self._class_features.get(class_key, [])
            if feature.level <= level
        ]

    def species_features(self, species_key: str) -> List[Feature]:
        return [feature.copy() for feature in self._species_features.get(species_key, [])]

    def feature_choices(self, class_key: str, level: int) -> List[FeatureChoice]:
        """
        Feature sub-choices a class has unlocked by the given level.

        Entries with an unknown choice type are logged and skipped.
        """
        choices = []
        for entry in self._choices:
            unlock_level = entry.get("classes", {}).get(class_key)
            if unlock_level is None or unlock_level > level:
                continue
            try:
                choice_type = FeatureChoiceType.from_name(entry["type"])
            except InvalidArgumentError as e:
                logger.warning(f"Skipping feature choice for {class_key}: {e}")
                continue

            choices.append(FeatureChoice(
                feature_key=entry["feature_key"],
                choice_type=choice_type,
                name=entry.get("name", ""),
                description=entry.get("description", ""),
                choose=entry.get("choose", 1),
                options=[
                    FeatureOption(
                        key=option["key"],
                        name=option["name"],
                        description=option.get("description", ""),
                    )
                    for option in entry.get("options", [])
                ],
            ))
        return choices

    def get_feature_choice(self, class_key: str, level: int, feature_key: str) -> FeatureChoice:
        """
        Find the sub-choice attached to a feature.

        Raises:
            NotFoundError: If the class has no sub-choice for that feature at this level
        """
        for choice in self.feature_choices(class_key, level):
            if choice.feature_key == feature_key:
                return choice
        raise NotFoundError(
            f"No feature choice '{feature_key}' for class '{class_key}'"
        ).with_context(class_key=class_key, feature_key=feature_key, level=level)
