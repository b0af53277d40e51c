# ABOUTME: Abstract rules provider consumed by the builder core
# ABOUTME: Resolves species, class, proficiency, equipment and feature keys to rule definitions

from abc import ABC, abstractmethod
from typing import List

from dnd_builder.rules.features import FeatureCatalog
from dnd_builder.rules.models import CharacterClass, Feature, Proficiency, Species
from dnd_builder.systems.inventory import Equipment


class RulesProvider(ABC):
    """
    Source of rule definitions.

    Every getter raises NotFoundError for an unknown key. The core never
    assumes where the definitions come from (a JSON catalog, an HTTP API,
    a test double).
    """

    @abstractmethod
    def get_species(self, key: str) -> Species:
        ...

    @abstractmethod
    def get_class(self, key: str) -> CharacterClass:
        ...

    @abstractmethod
    def get_proficiency(self, key: str) -> Proficiency:
        ...

    @abstractmethod
    def get_equipment(self, key: str) -> Equipment:
        ...

    @abstractmethod
    def list_class_features(self, class_key: str, level: int) -> List[Feature]:
        """Fresh copies of the class's feature templates up to the given level."""

    @abstractmethod
    def list_species_features(self, species_key: str) -> List[Feature]:
        """Fresh copies of the species' feature templates."""

    @abstractmethod
    def list_species(self) -> List[Species]:
        ...

    @abstractmethod
    def list_classes(self) -> List[CharacterClass]:
        ...

    @abstractmethod
    def get_equipment_by_category(self, category: str) -> List[Equipment]:
        """
        All equipment in a named category (e.g., "martial-weapons").

        Raises:
            NotFoundError: If the category is unknown
        """

    @property
    @abstractmethod
    def feature_catalog(self) -> FeatureCatalog:
        """Feature sub-choices (fighting styles, domains...) and the classes that unlock them."""
