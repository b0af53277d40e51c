# ABOUTME: Flattens the catalog's nested proficiency and equipment choice trees into presentable choices
# ABOUTME: Marks options that need a further sub-selection and records items granted alongside a bundle

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from dnd_builder.core.errors import BuilderError, InvalidArgumentError, NotFoundError
from dnd_builder.rules.models import (
    CharacterClass,
    ChoiceNode,
    CountedReferenceOption,
    MultipleOption,
    OptionSet,
    ReferenceOption,
    Species,
)
from dnd_builder.rules.provider import RulesProvider


logger = logging.getLogger(__name__)

NESTED_KEY_PREFIX = "nested-"


class ChoiceType(Enum):
    PROFICIENCY = "proficiency"
    EQUIPMENT = "equipment"


@dataclass
class ChoiceOption:
    """
    One selectable entry of a Choice.

    Attributes:
        key: Option key (an item or proficiency key, a bundle key, or "nested-N")
        name: Display name ("20x Arrow", "Leather Armor and Longbow")
        description: Short rules summary ("1d8 slashing", "16 AC")
        bundle_items: Equipment keys granted automatically with this option
        primary_item: Concrete equipment key the option itself grants, if any
        quantities: Units per granted key, where more than one
        nested: Secondary choice the user must make to complete this option
    """
    key: str
    name: str
    description: str = ""
    bundle_items: List[str] = field(default_factory=list)
    primary_item: Optional[str] = None
    quantities: Dict[str, int] = field(default_factory=dict)
    nested: Optional["Choice"] = None

    @property
    def is_nested(self) -> bool:
        return self.nested is not None

    def equipment_keys(self, nested_selections: Sequence[str] = ()) -> List[str]:
        """
        Expand a selection of this option into the equipment keys it grants.

        Each key appears once per unit, so "20x Arrow" yields twenty
        "arrow" entries.

        Args:
            nested_selections: Keys picked from the nested choice, if any

        Returns:
            Equipment keys in grant order: primary, nested picks, bundle items
        """
        keys: List[str] = []
        if self.primary_item:
            keys.append(self.primary_item)
        keys.extend(nested_selections)
        keys.extend(self.bundle_items)

        expanded: List[str] = []
        for key in keys:
            expanded.extend([key] * self.quantities.get(key, 1))
        return expanded


@dataclass
class Choice:
    """A presentable "choose N of these" unit."""
    id: str
    name: str
    description: str
    type: ChoiceType
    choose: int
    options: List[ChoiceOption] = field(default_factory=list)

    def get_option(self, key: str) -> Optional[ChoiceOption]:
        for option in self.options:
            if option.key == key:
                return option
        return None

    def option_keys(self) -> List[str]:
        return [option.key for option in self.options]


@dataclass
class ResolvedChoices:
    proficiency_choices: List[Choice] = field(default_factory=list)
    equipment_choices: List[Choice] = field(default_factory=list)


def _choose_text(choose: int, name: str) -> str:
    return f"Choose {choose} {name}".strip()


class ChoiceResolver:
    """
    Turns a species/class pair's rule-catalog choice trees into flat Choices.

    Malformed entries and categories the rules provider cannot resolve are
    logged and skipped; resolution always returns the valid subset.
    """

    def __init__(self, rules: RulesProvider):
        self.rules = rules

    def resolve(self, species: Optional[Species], character_class: Optional[CharacterClass]) -> ResolvedChoices:
        return ResolvedChoices(
            proficiency_choices=self.resolve_proficiency_choices(species, character_class),
            equipment_choices=self.resolve_equipment_choices(character_class),
        )

    # Proficiencies

    def resolve_proficiency_choices(
        self,
        species: Optional[Species],
        character_class: Optional[CharacterClass]
    ) -> List[Choice]:
        """
        Class proficiency choices followed by the species' optional choice.

        Options the species already grants are filtered out, and nested
        proficiency choices are flattened one level into their leaves.
        """
        granted = set()
        if species:
            granted = {p.key for p in species.starting_proficiencies}

        choices: List[Choice] = []
        if character_class:
            for index, option_set in enumerate(character_class.proficiency_choices):
                choice = self._proficiency_choice(
                    f"{character_class.key}-prof-{index}",
                    option_set,
                    _choose_text(option_set.choose, ""),
                    granted,
                )
                if choice:
                    choices.append(choice)

        if species and species.proficiency_options:
            option_set = species.proficiency_options
            noun = "racial proficiency" if option_set.choose == 1 else "racial proficiencies"
            choice = self._proficiency_choice(
                f"{species.key}-prof",
                option_set,
                _choose_text(option_set.choose, noun),
                granted,
            )
            if choice:
                choices.append(choice)

        return choices

    def _proficiency_choice(
        self,
        choice_id: str,
        option_set: ChoiceNode,
        description: str,
        granted: Iterable[str]
    ) -> Optional[Choice]:
        if not isinstance(option_set, OptionSet):
            logger.warning(f"Proficiency choice {choice_id} is not an option set, skipping")
            return None

        granted = set(granted)
        options: List[ChoiceOption] = []
        seen = set()
        for leaf in self._proficiency_leaves(choice_id, option_set):
            if leaf.key in granted or leaf.key in seen:
                continue
            seen.add(leaf.key)
            options.append(ChoiceOption(key=leaf.key, name=leaf.name))

        if not options:
            logger.warning(f"Proficiency choice {choice_id} has no selectable options, skipping")
            return None

        return Choice(
            id=choice_id,
            name=option_set.name,
            description=description,
            type=ChoiceType.PROFICIENCY,
            choose=min(option_set.choose, len(options)),
            options=options,
        )

    @staticmethod
    def _proficiency_leaves(choice_id: str, option_set: OptionSet) -> List[ReferenceOption]:
        leaves: List[ReferenceOption] = []
        for option in option_set.options:
            if isinstance(option, ReferenceOption):
                leaves.append(option)
            elif isinstance(option, OptionSet):
                for inner in option.options:
                    if isinstance(inner, ReferenceOption):
                        leaves.append(inner)
                    else:
                        logger.warning(f"Skipping deeply nested proficiency option in {choice_id}")
            else:
                logger.warning(
                    f"Skipping unsupported proficiency option {type(option).__name__} in {choice_id}"
                )
        return leaves

    def validate_proficiency_selections(
        self,
        species: Optional[Species],
        character_class: Optional[CharacterClass],
        keys: Sequence[str]
    ) -> None:
        """
        Check that every selected key is offered by some proficiency choice.

        Raises:
            InvalidArgumentError: If a key is not on offer
        """
        offered = set()
        for choice in self.resolve_proficiency_choices(species, character_class):
            offered.update(choice.option_keys())

        unknown = [key for key in keys if key not in offered]
        if unknown:
            raise InvalidArgumentError(
                f"Proficiencies not available for selection: {', '.join(unknown)}"
            ).with_context(
                species_key=species.key if species else None,
                class_key=character_class.key if character_class else None,
            )

    # Equipment

    def resolve_equipment_choices(self, character_class: Optional[CharacterClass]) -> List[Choice]:
        if character_class is None:
            return []

        choices = []
        for index, option_set in enumerate(character_class.starting_equipment_choices):
            choice_id = f"{character_class.key}-equip-{index}"
            try:
                choice = self._equipment_choice(choice_id, option_set)
            except (BuilderError, KeyError, TypeError) as e:
                logger.warning(f"Skipping malformed equipment choice {choice_id}: {e}")
                continue
            if choice:
                choices.append(choice)
        return choices

    def _equipment_choice(self, choice_id: str, option_set: ChoiceNode) -> Optional[Choice]:
        if not isinstance(option_set, OptionSet):
            logger.warning(f"Equipment choice {choice_id} is not an option set, skipping")
            return None

        if option_set.category and not option_set.options:
            options = self._category_options(option_set.category)
        else:
            options = []
            for index, node in enumerate(option_set.options):
                option = self._equipment_option(choice_id, index, node)
                if option:
                    options.append(option)

        if not options:
            logger.warning(f"Equipment choice {choice_id} has no resolvable options, skipping")
            return None

        return Choice(
            id=choice_id,
            name=option_set.name,
            description=_choose_text(option_set.choose, ""),
            type=ChoiceType.EQUIPMENT,
            choose=option_set.choose,
            options=options,
        )

    def _equipment_option(self, choice_id: str, index: int, node: ChoiceNode) -> Optional[ChoiceOption]:
        if isinstance(node, ReferenceOption):
            return self._item_option(node.key, node.name)
        if isinstance(node, CountedReferenceOption):
            return self._item_option(node.key, node.name, node.count)
        if isinstance(node, MultipleOption):
            return self._bundle_option(choice_id, index, node)
        if isinstance(node, OptionSet):
            nested = self._nested_choice(f"{choice_id}-{NESTED_KEY_PREFIX}{index}", node)
            if nested is None:
                return None
            return ChoiceOption(
                key=f"{NESTED_KEY_PREFIX}{index}",
                name=node.name,
                description=nested.description,
                nested=nested,
            )

        logger.warning(f"Skipping unsupported equipment option {node!r} in {choice_id}")
        return None

    def _item_option(self, key: str, name: str, count: int = 1) -> Optional[ChoiceOption]:
        try:
            equipment = self.rules.get_equipment(key)
        except NotFoundError:
            logger.warning(f"Equipment '{key}' not in the rules catalog, skipping option")
            return None

        display = equipment.name or name
        return ChoiceOption(
            key=key,
            name=f"{count}x {display}" if count > 1 else display,
            description=equipment.describe(),
            primary_item=key,
            quantities={key: count} if count > 1 else {},
        )

    def _bundle_option(self, choice_id: str, index: int, bundle: MultipleOption) -> Optional[ChoiceOption]:
        concrete: List[ChoiceOption] = []
        nested_sets: List[OptionSet] = []
        for item in bundle.items:
            if isinstance(item, OptionSet):
                nested_sets.append(item)
                continue
            if isinstance(item, ReferenceOption):
                option = self._item_option(item.key, item.name)
            elif isinstance(item, CountedReferenceOption):
                option = self._item_option(item.key, item.name, item.count)
            else:
                logger.warning(f"Skipping unsupported bundle entry in {choice_id}: {item!r}")
                continue
            if option is None:
                return None
            concrete.append(option)

        quantities: Dict[str, int] = {}
        for option in concrete:
            quantities.update(option.quantities)

        if nested_sets:
            if len(nested_sets) > 1:
                logger.warning(f"Bundle {bundle.key} has several nested choices, using the first")
            nested = self._nested_choice(f"{choice_id}-{NESTED_KEY_PREFIX}{index}", nested_sets[0])
            if nested is None:
                return None
            return ChoiceOption(
                key=f"{NESTED_KEY_PREFIX}{index}",
                name=bundle.name,
                description=nested.description,
                bundle_items=[option.key for option in concrete],
                quantities=quantities,
                nested=nested,
            )

        if not concrete:
            logger.warning(f"Bundle {bundle.key} in {choice_id} is empty, skipping")
            return None

        return ChoiceOption(
            key=bundle.key,
            name=" and ".join(option.name for option in concrete),
            description=", ".join(o.description for o in concrete if o.description),
            bundle_items=[option.key for option in concrete[1:]],
            primary_item=concrete[0].key,
            quantities=quantities,
        )

    def _nested_choice(self, choice_id: str, option_set: OptionSet) -> Optional[Choice]:
        if option_set.category:
            options = self._category_options(option_set.category)
        else:
            options = [
                option
                for option in (
                    self._equipment_option(choice_id, i, node)
                    for i, node in enumerate(option_set.options)
                )
                if option is not None and not option.is_nested
            ]

        if not options:
            logger.warning(f"Nested choice {choice_id} ({option_set.name}) resolved to nothing, skipping")
            return None

        return Choice(
            id=choice_id,
            name=option_set.name,
            description=_choose_text(option_set.choose, option_set.name),
            type=ChoiceType.EQUIPMENT,
            choose=option_set.choose,
            options=options,
        )

    def _category_options(self, category: str) -> List[ChoiceOption]:
        try:
            items = self.rules.get_equipment_by_category(category)
        except NotFoundError:
            logger.warning(f"Equipment category '{category}' could not be resolved")
            return []
        return [
            ChoiceOption(
                key=item.key,
                name=item.name,
                description=item.describe(),
                primary_item=item.key,
            )
            for item in items
        ]
