# ABOUTME: JSON catalog implementation of the rules provider
# ABOUTME: Loads races, classes, equipment, proficiencies and features from the srd data directory

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from dnd_builder.core.errors import NotFoundError
from dnd_builder.rules.features import FeatureCatalog
from dnd_builder.rules.models import CharacterClass, Feature, Proficiency, Species
from dnd_builder.rules.provider import RulesProvider
from dnd_builder.systems.inventory import (
    Armor,
    ArmorCategory,
    Equipment,
    Weapon,
    equipment_from_dict,
)


logger = logging.getLogger(__name__)


class JsonRulesProvider(RulesProvider):
    """
    Loads rule definitions from JSON files.

    Reads races.json, classes.json, equipment.json, proficiencies.json and
    features.json from <data_path>/srd. Files are read once, on first use.
    """

    def __init__(self, data_path: Path | None = None):
        """
        Initialize the provider.

        Args:
            data_path: Path to the data directory (defaults to dnd_builder/data)
        """
        if data_path is None:
            self.data_path = Path(__file__).parent.parent / "data"
        else:
            self.data_path = Path(data_path)

        self._cache: Dict[str, Any] = {}
        self._feature_catalog: Optional[FeatureCatalog] = None

    def _load(self, name: str) -> Any:
        """
        Load (and cache) one catalog file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the file is not valid JSON
        """
        if name not in self._cache:
            path = self.data_path / "srd" / f"{name}.json"
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    self._cache[name] = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Corrupted catalog file {path}: {e}")
        return self._cache[name]

    @property
    def feature_catalog(self) -> FeatureCatalog:
        if self._feature_catalog is None:
            self._feature_catalog = FeatureCatalog(self._load("features"))
        return self._feature_catalog

    def _resolve_proficiencies(self, keys: List[str], owner: str) -> List[Proficiency]:
        proficiencies = []
        for key in keys:
            try:
                proficiencies.append(self.get_proficiency(key))
            except NotFoundError:
                logger.warning(f"Unknown proficiency '{key}' referenced by {owner}, skipping")
        return proficiencies

    def get_species(self, key: str) -> Species:
        races = self._load("races")
        if key not in races:
            raise NotFoundError(f"Species '{key}' not found").with_context(species_key=key)

        data = dict(races[key])
        data["key"] = key
        data["starting_proficiencies"] = [
            p.to_dict()
            for p in self._resolve_proficiencies(data.get("starting_proficiencies", []), key)
        ]
        return Species.from_dict(data)

    def get_class(self, key: str) -> CharacterClass:
        classes = self._load("classes")
        if key not in classes:
            raise NotFoundError(f"Class '{key}' not found").with_context(class_key=key)

        data = dict(classes[key])
        data["key"] = key
        data["proficiencies"] = [
            p.to_dict()
            for p in self._resolve_proficiencies(data.get("proficiencies", []), key)
        ]
        return CharacterClass.from_dict(data)

    def get_proficiency(self, key: str) -> Proficiency:
        proficiencies = self._load("proficiencies")
        if key not in proficiencies:
            raise NotFoundError(f"Proficiency '{key}' not found").with_context(proficiency_key=key)

        data = dict(proficiencies[key])
        data["key"] = key
        return Proficiency.from_dict(data)

    def get_equipment(self, key: str) -> Equipment:
        items = self._load("equipment").get("items", {})
        if key not in items:
            raise NotFoundError(f"Equipment '{key}' not found").with_context(equipment_key=key)

        data = dict(items[key])
        data["key"] = key
        return equipment_from_dict(data)

    def list_class_features(self, class_key: str, level: int) -> List[Feature]:
        return self.feature_catalog.class_features(class_key, level)

    def list_species_features(self, species_key: str) -> List[Feature]:
        return self.feature_catalog.species_features(species_key)

    def list_species(self) -> List[Species]:
        return [self.get_species(key) for key in self._load("races")]

    def list_classes(self) -> List[CharacterClass]:
        return [self.get_class(key) for key in self._load("classes")]

    def get_equipment_by_category(self, category: str) -> List[Equipment]:
        """
        All equipment in a category.

        Categories come from two places: the explicit "categories" map in
        equipment.json (holy symbols, arcane foci, instruments...), and the
        weapon/armor categories derived from each item ("martial-weapons",
        "simple-melee-weapons", "heavy-armor", "shields"...).

        Unknown keys in an explicit category are logged and skipped.

        Raises:
            NotFoundError: If no item belongs to the category
        """
        equipment = self._load("equipment")
        explicit = equipment.get("categories", {})
        if category in explicit:
            members = []
            for key in explicit[category]:
                try:
                    members.append(self.get_equipment(key))
                except NotFoundError:
                    logger.warning(f"Unknown equipment '{key}' in category '{category}', skipping")
            if not members:
                raise NotFoundError(
                    f"Equipment category '{category}' has no known items"
                ).with_context(category=category)
            return members

        matches = [
            item for item in (self.get_equipment(key) for key in equipment.get("items", {}))
            if category in self._derived_categories(item)
        ]
        if not matches:
            raise NotFoundError(
                f"Equipment category '{category}' not found"
            ).with_context(category=category)
        return matches

    @staticmethod
    def _derived_categories(item: Equipment) -> List[str]:
        if isinstance(item, Weapon):
            kind = item.weapon_category.value
            return [
                "weapons",
                f"{kind}-weapons",
                f"{kind}-{item.weapon_range}-weapons",
            ]
        if isinstance(item, Armor):
            if item.armor_category == ArmorCategory.SHIELD:
                return ["armor", "shields"]
            return ["armor", f"{item.armor_category.value}-armor"]
        return []
