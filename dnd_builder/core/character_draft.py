# ABOUTME: Draft wrapper that tracks creation-flow progress for a character being built
# ABOUTME: Creation steps, their dependencies, and serialization of the flow state

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class CreationStep(Enum):
    SPECIES = "species"
    CLASS = "class"
    ABILITY_SCORES = "ability_scores"
    PROFICIENCIES = "proficiencies"
    EQUIPMENT = "equipment"
    FEATURES = "features"
    NAME = "name"
    REVIEW = "review"


DEFAULT_STEPS = [
    CreationStep.SPECIES,
    CreationStep.CLASS,
    CreationStep.ABILITY_SCORES,
    CreationStep.PROFICIENCIES,
    CreationStep.EQUIPMENT,
    CreationStep.FEATURES,
    CreationStep.NAME,
    CreationStep.REVIEW,
]

# Completing a step again invalidates the steps whose result depended on it
STEP_DEPENDENTS: Dict[CreationStep, List[CreationStep]] = {
    CreationStep.SPECIES: [
        CreationStep.ABILITY_SCORES,
        CreationStep.PROFICIENCIES,
        CreationStep.FEATURES,
    ],
    CreationStep.CLASS: [
        CreationStep.PROFICIENCIES,
        CreationStep.EQUIPMENT,
        CreationStep.FEATURES,
    ],
}


@dataclass
class FlowState:
    """
    Where a user is in the creation flow.

    Attributes:
        current_step: The first step not yet completed
        all_steps: Every step in flow order
        completed_steps: Steps finished so far
        last_updated: When the flow last changed
    """
    current_step: CreationStep = CreationStep.SPECIES
    all_steps: List[CreationStep] = field(default_factory=lambda: list(DEFAULT_STEPS))
    completed_steps: List[CreationStep] = field(default_factory=list)
    last_updated: datetime = field(default_factory=datetime.now)

    def is_completed(self, step: CreationStep) -> bool:
        return step in self.completed_steps

    def complete_step(self, step: CreationStep) -> None:
        if step not in self.completed_steps:
            self.completed_steps.append(step)
        self._advance()

    def reset_step(self, step: CreationStep) -> None:
        """Mark a step and everything that depends on it as not done."""
        for target in [step] + STEP_DEPENDENTS.get(step, []):
            if target in self.completed_steps:
                self.completed_steps.remove(target)
        self._advance()

    def invalidate_dependents(self, step: CreationStep) -> None:
        """Mark the steps that depend on this one as not done, keeping the step itself."""
        for target in STEP_DEPENDENTS.get(step, []):
            if target in self.completed_steps:
                self.completed_steps.remove(target)
        self._advance()

    def next_incomplete_step(self) -> Optional[CreationStep]:
        for step in self.all_steps:
            if step not in self.completed_steps:
                return step
        return None

    def all_steps_completed(self) -> bool:
        return self.next_incomplete_step() is None

    def _advance(self) -> None:
        self.current_step = self.next_incomplete_step() or self.all_steps[-1]
        self.last_updated = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_step": self.current_step.value,
            "all_steps": [step.value for step in self.all_steps],
            "completed_steps": [step.value for step in self.completed_steps],
            "last_updated": self.last_updated.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlowState":
        state = cls(
            current_step=CreationStep(data.get("current_step", CreationStep.SPECIES.value)),
            all_steps=[CreationStep(s) for s in data.get("all_steps", [])] or list(DEFAULT_STEPS),
            completed_steps=[CreationStep(s) for s in data.get("completed_steps", [])],
        )
        if data.get("last_updated"):
            state.last_updated = datetime.fromisoformat(data["last_updated"])
        return state


@dataclass
class CharacterDraft:
    """
    Flow bookkeeping for a DRAFT character.

    The character itself lives in the character store; the draft only
    points at it. Both are created together, and the draft is deleted once
    the character is finalized.
    """
    id: str
    owner_id: str
    realm_id: str
    character_id: str
    flow_state: FlowState = field(default_factory=FlowState)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def touch(self) -> None:
        self.updated_at = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "realm_id": self.realm_id,
            "character_id": self.character_id,
            "flow_state": self.flow_state.to_dict(),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CharacterDraft":
        draft = cls(
            id=data["id"],
            owner_id=data["owner_id"],
            realm_id=data["realm_id"],
            character_id=data["character_id"],
            flow_state=FlowState.from_dict(data.get("flow_state", {})),
        )
        if data.get("created_at"):
            draft.created_at = datetime.fromisoformat(data["created_at"])
        if data.get("updated_at"):
            draft.updated_at = datetime.fromisoformat(data["updated_at"])
        return draft
