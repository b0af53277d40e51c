# ABOUTME: Feature synthesis from species/class templates and the passive-effect registry
# ABOUTME: Existing features (and the sub-choices recorded on them) are never regenerated

import logging
from dataclasses import replace
from typing import Callable, Dict, List, Optional

from dnd_builder.core.character import Character
from dnd_builder.core.errors import InvalidArgumentError, NotFoundError
from dnd_builder.rules.features import FeatureChoice, FeatureChoiceType, set_choice, set_choices
from dnd_builder.rules.models import Feature, FeatureCategory
from dnd_builder.rules.provider import RulesProvider
from dnd_builder.systems.proficiencies import ProficiencyMerger


logger = logging.getLogger(__name__)

PassiveEffect = Callable[[Character, Feature, RulesProvider], None]

DARKVISION_RANGE = 60


def _keen_senses(character: Character, feature: Feature, rules: RulesProvider) -> None:
    """Keen Senses: proficiency in Perception."""
    ProficiencyMerger.add_proficiency(
        character.proficiencies, rules.get_proficiency("skill-perception")
    )


def _darkvision(character: Character, feature: Feature, rules: RulesProvider) -> None:
    feature.metadata.setdefault("range", DARKVISION_RANGE)


def _dwarven_toughness(character: Character, feature: Feature, rules: RulesProvider) -> None:
    """Dwarven Toughness: +1 max HP per level, applied once per level gained."""
    applied = feature.metadata.get("hp_bonus_applied", 0)
    bonus = character.level - applied
    if bonus <= 0:
        return
    character.max_hit_points += bonus
    character.current_hit_points += bonus
    feature.metadata["hp_bonus_applied"] = character.level


class PassiveEffectRegistry:
    """
    Feature key -> handler that applies the feature's always-on effect.

    Handlers run once per feature present on the character. A handler that
    raises is logged and skipped so one broken effect never blocks the rest.
    """

    def __init__(self):
        self._handlers: Dict[str, PassiveEffect] = {}

    def register(self, feature_key: str, handler: PassiveEffect) -> None:
        self._handlers[feature_key] = handler

    def unregister(self, feature_key: str) -> None:
        self._handlers.pop(feature_key, None)

    def has_handler(self, feature_key: str) -> bool:
        return feature_key in self._handlers

    def apply_all(self, character: Character, rules: RulesProvider) -> List[str]:
        """
        Run every registered handler whose feature the character has.

        Returns:
            Keys of the features whose effect applied cleanly
        """
        applied = []
        for feature in character.features:
            handler = self._handlers.get(feature.key)
            if handler is None:
                continue
            try:
                handler(character, feature, rules)
                applied.append(feature.key)
            except Exception as e:
                logger.error(
                    f"Passive effect for feature '{feature.key}' failed on character {character.id}: {e}",
                    exc_info=True
                )
        return applied

    @classmethod
    def default(cls) -> "PassiveEffectRegistry":
        registry = cls()
        registry.register("keen_senses", _keen_senses)
        registry.register("darkvision", _darkvision)
        registry.register("dwarven_toughness", _dwarven_toughness)
        return registry


class FeatureSynthesizer:
    """
    Fills in the features a character's species and class grant.

    Missing template features are appended as copies; a feature already
    present by key is left exactly as it is, metadata included.
    """

    def __init__(self, rules: RulesProvider, passives: Optional[PassiveEffectRegistry] = None):
        self.rules = rules
        self.passives = passives if passives is not None else PassiveEffectRegistry.default()

    def template_features(self, character: Character) -> List[Feature]:
        """Species templates followed by class templates for the current level."""
        templates: List[Feature] = []
        if character.species:
            templates.extend(self.rules.list_species_features(character.species.key))
        if character.character_class:
            templates.extend(
                self.rules.list_class_features(character.character_class.key, character.level)
            )
        return templates

    def synthesize(self, character: Character) -> List[Feature]:
        """
        Append any template feature the character is missing.

        Args:
            character: Character to fill in (modified in place)

        Returns:
            The features that were added
        """
        existing = {feature.key for feature in character.features}
        added = []
        for template in self.template_features(character):
            if template.key in existing:
                continue
            feature = template.copy()
            character.features.append(feature)
            existing.add(feature.key)
            added.append(feature)
        return added

    def replace_category(self, character: Character, category: FeatureCategory) -> None:
        """
        Swap the features of one category for the current templates.

        Used when the species or class changes on a draft. Features of that
        category that the new templates also grant are kept as they are.
        """
        templates = [t for t in self.template_features(character) if t.category == category]
        wanted = {t.key for t in templates}

        character.features = [
            feature for feature in character.features
            if feature.category != category or feature.key in wanted
        ]

        existing = {feature.key for feature in character.features}
        for template in templates:
            if template.key not in existing:
                character.features.append(template.copy())
                existing.add(template.key)

    def apply_passive_effects(self, character: Character) -> List[str]:
        return self.passives.apply_all(character, self.rules)

    @staticmethod
    def available_choice(character: Character, choice: FeatureChoice) -> FeatureChoice:
        """
        The choice as offered to this character.

        Expertise only offers proficiencies the character already has, or
        that its species or class grants at finalization.
        """
        if choice.choice_type != FeatureChoiceType.EXPERTISE:
            return choice

        granted = set()
        if character.species:
            granted.update(p.key for p in character.species.starting_proficiencies)
        if character.character_class:
            granted.update(p.key for p in character.character_class.proficiencies)
        options = [
            option for option in choice.options
            if option.key in granted
            or ProficiencyMerger.has_proficiency(character.proficiencies, option.key)
        ]
        return replace(choice, options=options)

    def get_pending_feature_choices(self, character: Character) -> List[FeatureChoice]:
        """
        Feature sub-choices the character's class has unlocked but not yet made.

        A choice is pending when its feature is missing or its metadata key
        is unset.
        """
        if character.character_class is None:
            return []

        catalog = self.rules.feature_catalog
        pending = []
        for choice in catalog.feature_choices(character.character_class.key, character.level):
            feature = character.get_feature(choice.feature_key)
            if feature is None or not feature.metadata.get(choice.choice_type.metadata_key):
                pending.append(self.available_choice(character, choice))
        return pending

    def apply_feature_choice(self, character: Character, feature_key: str, option_key: str) -> Feature:
        """Record a single-pick sub-choice. See apply_feature_choices."""
        return self.apply_feature_choices(character, feature_key, [option_key])

    def apply_feature_choices(self, character: Character, feature_key: str, option_keys: List[str]) -> Feature:
        """
        Record the user's sub-choice on a feature.

        Exactly `choose` distinct options must be given. A single pick is
        stored as a string, several picks (expertise) as a list. The feature
        is synthesized from its template first if the character does not
        have it yet.

        Raises:
            NotFoundError: If the character has no class, or the class has no such
                feature choice at its level
            InvalidArgumentError: If the picks are not options the choice offers
        """
        if character.character_class is None:
            raise NotFoundError(
                "Character has no class, so no feature choices are available"
            ).with_context(character_id=character.id, feature_key=feature_key)

        choice = self.available_choice(character, self.rules.feature_catalog.get_feature_choice(
            character.character_class.key, character.level, feature_key
        ))
        if len(option_keys) != choice.choose or len(set(option_keys)) != len(option_keys):
            raise InvalidArgumentError(
                f"{choice.name} needs {choice.choose} different option(s), got {len(option_keys)}"
            ).with_context(feature_key=feature_key, option_keys=list(option_keys))
        for option_key in option_keys:
            if choice.get_option(option_key) is None:
                raise InvalidArgumentError(
                    f"'{option_key}' is not a valid {choice.name} option"
                ).with_context(feature_key=feature_key, option_key=option_key)

        feature = character.get_feature(feature_key)
        if feature is None:
            for template in self.template_features(character):
                if template.key == feature_key:
                    feature = template.copy()
                    character.features.append(feature)
                    break
        if feature is None:
            raise NotFoundError(
                f"Feature '{feature_key}' is not granted to this character"
            ).with_context(character_id=character.id, feature_key=feature_key)

        if choice.choose == 1:
            set_choice(feature, choice.choice_type, option_keys[0])
        else:
            set_choices(feature, choice.choice_type, option_keys)
        return feature
