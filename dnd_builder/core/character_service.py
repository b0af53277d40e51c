# ABOUTME: Character builder service: draft lifecycle, partial updates and the draft-to-active finalization
# ABOUTME: Sequences derivation, proficiency merging, feature synthesis and AC, persisting only finished copies

import functools
import logging
import uuid
from dataclasses import dataclass, fields
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, TypeVar

from dnd_builder.core.abilities import AbilityRoll, AbilityScore, Attribute
from dnd_builder.core.character import Character, CharacterStatus
from dnd_builder.core.character_draft import CharacterDraft, CreationStep
from dnd_builder.core.character_factory import CharacterFactory
from dnd_builder.core.character_vault import CharacterStore, DraftStore
from dnd_builder.core.choice_resolver import ChoiceResolver, ResolvedChoices
from dnd_builder.core.creation_session import (
    DEFAULT_SESSION_TTL,
    CreationSession,
    InMemorySessionStore,
    SessionStore,
)
from dnd_builder.core.dice import DiceRoller
from dnd_builder.core.errors import (
    BuilderError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
)
from dnd_builder.rules.features import FeatureChoice
from dnd_builder.rules.models import Feature, FeatureCategory, Proficiency
from dnd_builder.rules.provider import RulesProvider
from dnd_builder.systems.armor_class import calculate_armor_class
from dnd_builder.systems.features import FeatureSynthesizer
from dnd_builder.systems.inventory import (
    Armor,
    Equipment,
    EquipmentCategory,
    EquipmentSlot,
    Inventory,
    Weapon,
)
from dnd_builder.systems.proficiencies import ProficiencyMerger
from dnd_builder.utils.events import Event, EventBus, EventType


logger = logging.getLogger(__name__)

ABILITY_COUNT = len(Attribute)
BASE_ABILITY_SCORE = 10

F = TypeVar("F", bound=Callable[..., Any])


def _operation(name: str) -> Callable[[F], F]:
    """Tag builder errors escaping a service call with the operation name."""
    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except BuilderError as e:
                e.in_operation(name)
                logger.debug(f"{name} failed: {e} {e.context}")
                raise
        return wrapper  # type: ignore[return-value]
    return decorator


def _require(value: Optional[str], field_name: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidArgumentError(f"{field_name} is required").with_context(field=field_name)
    return str(value).strip()


@dataclass
class DraftUpdate:
    """
    A partial update to a draft character.

    Every field is optional; None leaves that part of the draft untouched.
    An empty ability_rolls list or ability_assignments dict clears it.

    Attributes:
        name: New character name
        species_key: Rules key of the chosen species
        class_key: Rules key of the chosen class
        ability_rolls: Replacement set of rolled values
        ability_assignments: Replacement ability code -> roll id map
        proficiencies: Newly selected proficiency keys (skills replace, others add)
        equipment: Equipment keys to add, one entry per unit
    """
    name: Optional[str] = None
    species_key: Optional[str] = None
    class_key: Optional[str] = None
    ability_rolls: Optional[List[AbilityRoll]] = None
    ability_assignments: Optional[Dict[str, str]] = None
    proficiencies: Optional[List[str]] = None
    equipment: Optional[List[str]] = None

    def changed_fields(self) -> List[str]:
        return [f.name for f in fields(self) if getattr(self, f.name) is not None]

    def is_empty(self) -> bool:
        return not self.changed_fields()


class CharacterService:
    """
    Builds characters from partial selections and finalizes them for play.

    Drafts are DRAFT-status characters in the character store, each paired
    with a CharacterDraft in the draft store that tracks flow progress.
    Every operation works on a copy of the stored character and persists it
    last, so a failed call leaves the stored record as it was.
    """

    def __init__(
        self,
        rules: RulesProvider,
        character_store: CharacterStore,
        draft_store: DraftStore,
        session_store: Optional[SessionStore] = None,
        event_bus: Optional[EventBus] = None,
        dice_roller: Optional[DiceRoller] = None,
        session_ttl: timedelta = DEFAULT_SESSION_TTL
    ):
        """
        Initialize the service.

        Args:
            rules: Source of species, class, proficiency, equipment and feature rules
            character_store: Persistence for characters
            draft_store: Persistence for creation-flow drafts
            session_store: Creation session store (an in-memory one is created if omitted)
            event_bus: Optional bus that receives builder events
            dice_roller: Dice roller for ability rolls (seed it for reproducible tests)
            session_ttl: Lifetime of sessions in the default session store
        """
        self.rules = rules
        self.characters = character_store
        self.drafts = draft_store
        self.event_bus = event_bus
        self.factory = CharacterFactory(dice_roller)
        self.resolver = ChoiceResolver(rules)
        self.merger = ProficiencyMerger(rules)
        self.synthesizer = FeatureSynthesizer(rules)
        if session_store is None:
            session_store = InMemorySessionStore(ttl=session_ttl, on_expire=self._on_session_expired)
        self.sessions = session_store

    # Draft lifecycle

    @_operation("get_or_create_draft_character")
    def get_or_create_draft_character(self, user_id: str, realm_id: str) -> Character:
        """
        Return the user's draft for this realm, creating one if there is none.

        When several drafts exist for the pair, the newest is kept and the
        others are discarded along with their draft characters.

        Raises:
            InvalidArgumentError: If user_id or realm_id is missing
        """
        user_id = _require(user_id, "user_id")
        realm_id = _require(realm_id, "realm_id")

        drafts = sorted(
            self.drafts.get_by_owner_and_realm(user_id, realm_id),
            key=lambda d: (d.created_at, d.id)
        )
        if drafts:
            draft = drafts.pop()
            for stale in drafts:
                logger.info(f"Discarding extra draft {stale.id} for owner {user_id}")
                self._discard_draft(stale)

            try:
                character = self.characters.get(draft.character_id)
            except NotFoundError:
                logger.warning(f"Draft {draft.id} points at missing character {draft.character_id}")
                self._delete_draft_quietly(draft.id)
            else:
                if character.is_draft:
                    return character
                logger.warning(f"Draft {draft.id} wraps finalized character {character.id}, discarding")
                self._delete_draft_quietly(draft.id)

        return self._create_draft(user_id, realm_id)

    @_operation("start_fresh_character_creation")
    def start_fresh_character_creation(self, user_id: str, realm_id: str) -> Character:
        """Discard any existing draft for the user in this realm and start a new one."""
        user_id = _require(user_id, "user_id")
        realm_id = _require(realm_id, "realm_id")

        for draft in self.drafts.get_by_owner_and_realm(user_id, realm_id):
            self._discard_draft(draft)
        return self._create_draft(user_id, realm_id)

    def _create_draft(self, user_id: str, realm_id: str) -> Character:
        character = Character(id=str(uuid.uuid4()), owner_id=user_id, realm_id=realm_id)
        self.characters.create(character)

        draft = CharacterDraft(
            id=str(uuid.uuid4()),
            owner_id=user_id,
            realm_id=realm_id,
            character_id=character.id,
        )
        try:
            self.drafts.create(draft)
        except BuilderError:
            self._delete_character_quietly(character.id)
            raise

        logger.info(f"Created draft character {character.id} for owner {user_id} in realm {realm_id}")
        self._emit(EventType.DRAFT_CREATED, character_id=character.id, owner_id=user_id, realm_id=realm_id)
        return character

    def _discard_draft(self, draft: CharacterDraft) -> None:
        try:
            character = self.characters.get(draft.character_id)
            if character.is_draft:
                self.characters.delete(character.id)
        except NotFoundError:
            pass
        self._delete_draft_quietly(draft.id)

    def _delete_draft_quietly(self, draft_id: str) -> None:
        try:
            self.drafts.delete(draft_id)
        except BuilderError as e:
            logger.warning(f"Could not delete draft {draft_id}: {e}")

    def _delete_character_quietly(self, character_id: str) -> None:
        try:
            self.characters.delete(character_id)
        except BuilderError as e:
            logger.warning(f"Could not delete character {character_id}: {e}")

    # Updates

    @_operation("update_draft_character")
    def update_draft_character(self, character_id: str, update: DraftUpdate) -> Character:
        """
        Apply a partial update to a draft and re-derive what it affects.

        Raises:
            InvalidArgumentError: If the id is missing or an input is malformed
            NotFoundError: If the character or a referenced rule key does not exist
            InvalidStateError: If the character is no longer a draft
        """
        character_id = _require(character_id, "character_id")
        if update is None:
            raise InvalidArgumentError("update is required").with_context(character_id=character_id)

        character = self._load_draft(character_id)
        work = character.copy()

        completed, invalidated = self._apply_update(work, update)

        work.touch()
        self.characters.update(work)
        self._advance_flow(work.id, completed, invalidated)

        self._emit(EventType.DRAFT_UPDATED, character_id=work.id, fields=update.changed_fields())
        return work

    def _apply_update(self, work: Character, update: DraftUpdate):
        completed: List[CreationStep] = []
        invalidated: List[CreationStep] = []
        rederive = False

        if update.name is not None:
            work.name = _require(update.name, "name")
            completed.append(CreationStep.NAME)

        if update.species_key is not None:
            species = self.rules.get_species(_require(update.species_key, "species_key"))
            if work.species is not None and work.species.key != species.key:
                invalidated.append(CreationStep.SPECIES)
            work.species = species
            work.speed = species.speed
            self.synthesizer.replace_category(work, FeatureCategory.SPECIES)
            completed.append(CreationStep.SPECIES)
            rederive = True

        if update.class_key is not None:
            character_class = self.rules.get_class(_require(update.class_key, "class_key"))
            if work.character_class is not None and work.character_class.key != character_class.key:
                invalidated.append(CreationStep.CLASS)
            work.character_class = character_class
            work.hit_die = character_class.hit_die
            self.synthesizer.replace_category(work, FeatureCategory.CLASS)
            completed.append(CreationStep.CLASS)
            rederive = True

        if update.ability_rolls is not None:
            work.ability_rolls = list(update.ability_rolls)
            rederive = True

        if update.ability_assignments is not None:
            work.ability_assignments = {
                Attribute.from_code(code).code: roll_id
                for code, roll_id in update.ability_assignments.items()
            }
            rederive = True

        if update.proficiencies is not None:
            work.proficiencies = self.merger.merge(work.proficiencies, update.proficiencies)
            completed.append(CreationStep.PROFICIENCIES)

        if update.equipment is not None:
            # a new selection replaces the previous one
            work.inventory = Inventory()
            self._grant_equipment(work, update.equipment)
            completed.append(CreationStep.EQUIPMENT)

        if rederive:
            work.attributes = self.factory.derive_attributes(
                work.ability_rolls, work.ability_assignments, work.species
            )
            if len(work.attributes) == ABILITY_COUNT:
                completed.append(CreationStep.ABILITY_SCORES)
            self._refresh_hit_points(work)

        work.armor_class = calculate_armor_class(work)
        return completed, invalidated

    def _refresh_hit_points(self, work: Character) -> None:
        if work.character_class is None:
            return
        con_mod = work.get_ability_modifier(Attribute.CONSTITUTION)
        work.max_hit_points = self.factory.calculate_hp(work.hit_die, con_mod, work.level)
        work.current_hit_points = work.max_hit_points

    def _grant_equipment(self, work: Character, keys: List[str]) -> List[Equipment]:
        granted = []
        for key in keys:
            try:
                equipment = self.rules.get_equipment(key)
            except NotFoundError:
                logger.warning(f"Unknown equipment '{key}' for character {work.id}, skipping")
                continue
            work.inventory.add_item(equipment)
            granted.append(equipment)
        return granted

    def _advance_flow(
        self,
        character_id: str,
        completed: List[CreationStep],
        invalidated: List[CreationStep]
    ) -> None:
        if not completed and not invalidated:
            return
        try:
            draft = self.drafts.get_by_character_id(character_id)
        except NotFoundError:
            logger.warning(f"No draft tracks character {character_id}, flow state not updated")
            return

        for step in invalidated:
            draft.flow_state.invalidate_dependents(step)
        for step in completed:
            draft.flow_state.complete_step(step)
        draft.touch()

        try:
            self.drafts.update(draft)
        except BuilderError as e:
            logger.warning(f"Could not save flow state for draft {draft.id}: {e}")

    @_operation("roll_ability_scores")
    def roll_ability_scores(self, character_id: str, auto_assign: bool = False) -> Character:
        """
        Roll six new ability values for a draft, optionally assigning them by class priority.

        Any previous rolls and assignments are replaced.
        """
        rolls = self.factory.roll_abilities()
        assignments: Dict[str, str] = {}
        if auto_assign:
            character = self._load_draft(_require(character_id, "character_id"))
            assignments = self.factory.auto_assign_abilities(rolls, character.character_class)
        return self.update_draft_character(
            character_id, DraftUpdate(ability_rolls=rolls, ability_assignments=assignments)
        )

    # Finalization

    @_operation("finalize_draft_character")
    def finalize_draft_character(self, character_id: str) -> Character:
        """
        Turn a draft into an active character, exactly once.

        Steps: self-heal attributes, hit points, features, passive effects
        and AC, starting proficiencies, starting equipment, resource pools,
        then mark ACTIVE and persist. The draft wrapper is deleted afterwards
        on a best-effort basis.

        Raises:
            InvalidArgumentError: If the id is missing
            NotFoundError: If the character does not exist
            InvalidStateError: If the character is not a draft (nothing is written)
            PersistenceError: If saving fails (the stored character stays a draft)
        """
        character_id = _require(character_id, "character_id")
        character = self._load_draft(character_id)
        work = character.copy()

        features, proficiencies, items = self._finalize(work)

        work.status = CharacterStatus.ACTIVE
        work.touch()
        try:
            self.characters.update(work)
        except OSError as e:
            raise PersistenceError("Could not save finalized character", cause=e).with_context(
                character_id=work.id
            )

        self._cleanup_after_finalize(work.id)

        logger.info(f"Finalized character {work.id} ({work})")
        for feature in features:
            self._emit(EventType.FEATURE_GRANTED, character_id=work.id, feature_key=feature.key)
        for proficiency in proficiencies:
            self._emit(EventType.PROFICIENCY_GRANTED, character_id=work.id, proficiency_key=proficiency.key)
        for item in items:
            self._emit(EventType.ITEM_ACQUIRED, character_id=work.id, item_key=item.key)
        self._emit(EventType.CHARACTER_FINALIZED, character_id=work.id, name=work.name)
        return work

    @_operation("finalize_character_with_name")
    def finalize_character_with_name(self, character_id: str, name: str) -> Character:
        self.update_draft_character(character_id, DraftUpdate(name=_require(name, "name")))
        return self.finalize_draft_character(character_id)

    def _finalize(self, work: Character):
        # 1. attributes
        if work.ability_assignments and not work.attributes:
            logger.warning(f"Character {work.id} has assignments but no attributes, re-deriving")
            work.attributes = self.factory.derive_attributes(
                work.ability_rolls, work.ability_assignments, work.species
            )
        for attribute in Attribute:
            if attribute not in work.attributes:
                logger.warning(f"Character {work.id} has no {attribute.code} score, using {BASE_ABILITY_SCORE}")
                work.attributes[attribute] = AbilityScore.from_score(BASE_ABILITY_SCORE)

        # 2. hit points
        if work.max_hit_points == 0 and work.character_class is not None:
            work.hit_die = work.character_class.hit_die
            self._refresh_hit_points(work)

        # 3. features
        features = self.synthesizer.synthesize(work)

        # 4. passive effects, AC
        self.synthesizer.apply_passive_effects(work)
        work.armor_class = calculate_armor_class(work)

        # 5. starting proficiencies
        proficiencies = self._grant_starting_proficiencies(work)

        # 6. starting equipment
        items = self._grant_starting_equipment(work)
        self._auto_equip(work)
        work.armor_class = calculate_armor_class(work)

        # 7. resource pools
        self.factory.initialize_class_resources(work)

        return features, proficiencies, items

    def _grant_starting_proficiencies(self, work: Character) -> List[Proficiency]:
        granted: List[Proficiency] = []
        character_class = work.character_class
        if character_class is not None:
            if all(ProficiencyMerger.has_proficiency(work.proficiencies, p.key)
                   for p in character_class.proficiencies):
                logger.debug(f"Character {work.id} already has its class proficiencies")
            else:
                for proficiency in character_class.proficiencies:
                    if ProficiencyMerger.add_proficiency(work.proficiencies, proficiency):
                        granted.append(proficiency)

        if work.species is not None:
            for proficiency in work.species.starting_proficiencies:
                if ProficiencyMerger.add_proficiency(work.proficiencies, proficiency):
                    granted.append(proficiency)
        return granted

    def _grant_starting_equipment(self, work: Character) -> List[Equipment]:
        if work.character_class is None:
            return []

        granted = []
        for entry in work.character_class.starting_equipment:
            try:
                equipment = self.rules.get_equipment(entry.key)
                work.inventory.add_item(equipment, entry.quantity)
            except (NotFoundError, ValueError) as e:
                logger.warning(f"Could not grant starting equipment '{entry.key}' to {work.id}: {e}")
                continue
            granted.append(equipment)
        return granted

    @staticmethod
    def _auto_equip(work: Character) -> None:
        """Equip the first body armor, shield and weapon carried, where those slots are empty."""
        inventory = work.inventory
        armor = [item for item in inventory.get_items_by_category(EquipmentCategory.ARMOR)
                 if isinstance(item, Armor)]

        if inventory.body_armor() is None:
            body = next((a for a in armor if not a.is_shield), None)
            if body is not None:
                inventory.equip_item(body.key)

        if inventory.shield() is None:
            shield = next((a for a in armor if a.is_shield), None)
            if shield is not None:
                inventory.equip_item(shield.key)

        holding_weapon = (
            inventory.get_equipped_item(EquipmentSlot.MAIN_HAND) is not None
            or inventory.get_equipped_item(EquipmentSlot.TWO_HANDED) is not None
        )
        if not holding_weapon:
            weapons = [item for bucket in inventory.items.values() for item in bucket
                       if isinstance(item, Weapon)]
            if inventory.shield() is not None:
                weapons = [w for w in weapons if not w.is_two_handed]
            if weapons:
                inventory.equip_item(weapons[0].key)

    def _cleanup_after_finalize(self, character_id: str) -> None:
        try:
            draft = self.drafts.get_by_character_id(character_id)
        except NotFoundError:
            logger.debug(f"No draft left to delete for character {character_id}")
        else:
            self._delete_draft_quietly(draft.id)

        try:
            for session in self.sessions.purge_expired():
                logger.debug(f"Purged expired session {session.id}")
        except BuilderError as e:
            logger.warning(f"Session purge failed: {e}")

    # Choices and features

    @_operation("resolve_choices")
    def resolve_choices(self, species_key: str, class_key: str) -> ResolvedChoices:
        """
        Flattened proficiency and equipment choices for a species/class pair.

        Raises:
            InvalidArgumentError: If either key is missing
            NotFoundError: If either key is unknown to the rules provider
        """
        species = self.rules.get_species(_require(species_key, "species_key"))
        character_class = self.rules.get_class(_require(class_key, "class_key"))
        return self.resolver.resolve(species, character_class)

    @_operation("get_pending_feature_choices")
    def get_pending_feature_choices(self, character_id: str) -> List[FeatureChoice]:
        """Feature sub-choices the character has unlocked but not yet made."""
        character = self.characters.get(_require(character_id, "character_id"))
        return self.synthesizer.get_pending_feature_choices(character)

    @_operation("select_feature_option")
    def select_feature_option(self, character_id: str, feature_key: str, option_key: str) -> Character:
        """
        Record a single-pick feature sub-choice (fighting style, domain,
        favored enemy, terrain, sorcerous origin, patron).

        Works on drafts and active characters alike; the choice is stored in
        the feature's metadata and survives finalization.

        Raises:
            InvalidArgumentError: If an argument is missing or the option is not offered
            NotFoundError: If the character or the feature choice does not exist
        """
        return self._select_feature_options(
            character_id, feature_key, [_require(option_key, "option_key")]
        )

    @_operation("select_feature_options")
    def select_feature_options(self, character_id: str, feature_key: str, option_keys: List[str]) -> Character:
        """
        Record a feature sub-choice that takes several picks (rogue expertise).

        Raises:
            InvalidArgumentError: If an argument is missing, the pick count is wrong
                or a pick is not offered
            NotFoundError: If the character or the feature choice does not exist
        """
        if not option_keys:
            raise InvalidArgumentError("option_keys is required").with_context(field="option_keys")
        return self._select_feature_options(
            character_id, feature_key, [_require(key, "option_keys") for key in option_keys]
        )

    def _select_feature_options(self, character_id: str, feature_key: str, option_keys: List[str]) -> Character:
        character = self.characters.get(_require(character_id, "character_id"))
        work = character.copy()

        feature: Feature = self.synthesizer.apply_feature_choices(
            work, _require(feature_key, "feature_key"), option_keys
        )
        work.armor_class = calculate_armor_class(work)
        work.touch()
        self.characters.update(work)

        if work.is_draft and not self.synthesizer.get_pending_feature_choices(work):
            self._advance_flow(work.id, [CreationStep.FEATURES], [])

        self._emit(
            EventType.FEATURE_CHOICE_MADE,
            character_id=work.id, feature_key=feature.key, option_key=",".join(option_keys)
        )
        return work

    # Lookups and repair

    @_operation("get_character")
    def get_character(self, character_id: str) -> Character:
        return self.characters.get(_require(character_id, "character_id"))

    @_operation("list_characters")
    def list_characters(
        self,
        owner_id: str,
        realm_id: Optional[str] = None,
        status: Optional[CharacterStatus] = None
    ) -> List[Character]:
        owner_id = _require(owner_id, "owner_id")
        if realm_id:
            characters = self.characters.get_by_owner_and_realm(owner_id, realm_id)
        else:
            characters = self.characters.get_by_owner(owner_id)
        if status is not None:
            characters = [c for c in characters if c.status == status]
        return sorted(characters, key=lambda c: c.created_at)

    @_operation("get_draft_for_character")
    def get_draft_for_character(self, character_id: str) -> CharacterDraft:
        return self.drafts.get_by_character_id(_require(character_id, "character_id"))

    @_operation("repair_character_attributes")
    def repair_character_attributes(self, character_id: str) -> Character:
        """
        Re-derive ability scores for a character whose assignments outran its attributes.

        Nothing is written when the attributes are already complete.
        """
        character = self.characters.get(_require(character_id, "character_id"))
        assigned = {
            Attribute.from_code(code) for code in character.ability_assignments
        }
        if assigned.issubset(character.attributes.keys()):
            return character

        work = character.copy()
        derived = self.factory.derive_attributes(
            work.ability_rolls, work.ability_assignments, work.species
        )
        work.attributes.update(derived)
        work.armor_class = calculate_armor_class(work)
        work.touch()
        self.characters.update(work)
        logger.info(f"Repaired attributes for character {work.id}")
        return work

    # Creation sessions

    @_operation("start_creation_session")
    def start_creation_session(
        self,
        user_id: str,
        realm_id: str,
        character_id: Optional[str] = None
    ) -> CreationSession:
        session = self.sessions.create(
            _require(user_id, "user_id"), _require(realm_id, "realm_id"), character_id
        )
        self._emit(EventType.SESSION_STARTED, session_id=session.id, owner_id=session.owner_id)
        return session

    @_operation("get_creation_session")
    def get_creation_session(self, session_id: str) -> CreationSession:
        return self.sessions.get(_require(session_id, "session_id"))

    @_operation("update_creation_session")
    def update_creation_session(
        self,
        session_id: str,
        current_step: Optional[CreationStep] = None,
        character_id: Optional[str] = None
    ) -> CreationSession:
        session = self.sessions.get(_require(session_id, "session_id"))
        if current_step is not None:
            session.current_step = current_step
        if character_id is not None:
            session.character_id = character_id
        return self.sessions.update(session)

    def _on_session_expired(self, session: CreationSession) -> None:
        logger.debug(f"Creation session {session.id} expired")
        self._emit(EventType.SESSION_EXPIRED, session_id=session.id, owner_id=session.owner_id)

    # Helpers

    def _load_draft(self, character_id: str) -> Character:
        character = self.characters.get(character_id)
        if not character.is_draft:
            raise InvalidStateError(
                "Character is not a draft"
            ).with_context(character_id=character_id, status=character.status.value)
        return character

    def _emit(self, event_type: EventType, **data: Any) -> None:
        if self.event_bus is not None:
            self.event_bus.emit(Event(event_type, data))
