# ABOUTME: Character and draft store interfaces with in-memory and JSON vault implementations
# ABOUTME: Stores hand out copies, so callers only change stored state through update()

import copy
import json
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from dnd_builder.core.character import Character
from dnd_builder.core.character_draft import CharacterDraft
from dnd_builder.core.errors import InvalidArgumentError, NotFoundError, PersistenceError


logger = logging.getLogger(__name__)

# Current character vault version
VAULT_VERSION = "1.0.0"


class CharacterStore(ABC):
    """Persistence for characters, both drafts and active ones."""

    @abstractmethod
    def create(self, character: Character) -> None:
        """
        Raises:
            InvalidArgumentError: If a character with the same id exists
        """

    @abstractmethod
    def get(self, character_id: str) -> Character:
        """
        Raises:
            NotFoundError: If no character has this id
        """

    @abstractmethod
    def update(self, character: Character) -> None:
        """
        Raises:
            NotFoundError: If the character was never created
        """

    @abstractmethod
    def delete(self, character_id: str) -> None:
        """
        Raises:
            NotFoundError: If no character has this id
        """

    @abstractmethod
    def get_by_owner(self, owner_id: str) -> List[Character]:
        ...

    @abstractmethod
    def get_by_owner_and_realm(self, owner_id: str, realm_id: str) -> List[Character]:
        ...


class DraftStore(ABC):
    """Persistence for the creation-flow wrappers around draft characters."""

    @abstractmethod
    def create(self, draft: CharacterDraft) -> None:
        ...

    @abstractmethod
    def get(self, draft_id: str) -> CharacterDraft:
        ...

    @abstractmethod
    def update(self, draft: CharacterDraft) -> None:
        ...

    @abstractmethod
    def delete(self, draft_id: str) -> None:
        ...

    @abstractmethod
    def get_by_owner_and_realm(self, owner_id: str, realm_id: str) -> List[CharacterDraft]:
        ...

    @abstractmethod
    def get_by_character_id(self, character_id: str) -> CharacterDraft:
        """
        Raises:
            NotFoundError: If no draft wraps this character
        """


class InMemoryCharacterStore(CharacterStore):
    """Dictionary-backed character store, guarded by a lock."""

    def __init__(self):
        self._characters: Dict[str, Character] = {}
        self._lock = threading.Lock()

    def create(self, character: Character) -> None:
        with self._lock:
            if character.id in self._characters:
                raise InvalidArgumentError(
                    f"Character ID already exists: {character.id}"
                ).with_context(character_id=character.id)
            self._characters[character.id] = character.copy()

    def get(self, character_id: str) -> Character:
        with self._lock:
            if character_id not in self._characters:
                raise NotFoundError(
                    f"Character not found: {character_id}"
                ).with_context(character_id=character_id)
            return self._characters[character_id].copy()

    def update(self, character: Character) -> None:
        with self._lock:
            if character.id not in self._characters:
                raise NotFoundError(
                    f"Character not found: {character.id}"
                ).with_context(character_id=character.id)
            self._characters[character.id] = character.copy()

    def delete(self, character_id: str) -> None:
        with self._lock:
            if self._characters.pop(character_id, None) is None:
                raise NotFoundError(
                    f"Character not found: {character_id}"
                ).with_context(character_id=character_id)

    def get_by_owner(self, owner_id: str) -> List[Character]:
        with self._lock:
            return [c.copy() for c in self._characters.values() if c.owner_id == owner_id]

    def get_by_owner_and_realm(self, owner_id: str, realm_id: str) -> List[Character]:
        with self._lock:
            return [
                c.copy() for c in self._characters.values()
                if c.owner_id == owner_id and c.realm_id == realm_id
            ]


class InMemoryDraftStore(DraftStore):
    """Dictionary-backed draft store, guarded by a lock."""

    def __init__(self):
        self._drafts: Dict[str, CharacterDraft] = {}
        self._lock = threading.Lock()

    def create(self, draft: CharacterDraft) -> None:
        with self._lock:
            if draft.id in self._drafts:
                raise InvalidArgumentError(
                    f"Draft ID already exists: {draft.id}"
                ).with_context(draft_id=draft.id)
            self._drafts[draft.id] = copy.deepcopy(draft)

    def get(self, draft_id: str) -> CharacterDraft:
        with self._lock:
            if draft_id not in self._drafts:
                raise NotFoundError(f"Draft not found: {draft_id}").with_context(draft_id=draft_id)
            return copy.deepcopy(self._drafts[draft_id])

    def update(self, draft: CharacterDraft) -> None:
        with self._lock:
            if draft.id not in self._drafts:
                raise NotFoundError(f"Draft not found: {draft.id}").with_context(draft_id=draft.id)
            self._drafts[draft.id] = copy.deepcopy(draft)

    def delete(self, draft_id: str) -> None:
        with self._lock:
            if self._drafts.pop(draft_id, None) is None:
                raise NotFoundError(f"Draft not found: {draft_id}").with_context(draft_id=draft_id)

    def get_by_owner_and_realm(self, owner_id: str, realm_id: str) -> List[CharacterDraft]:
        with self._lock:
            return [
                copy.deepcopy(d) for d in self._drafts.values()
                if d.owner_id == owner_id and d.realm_id == realm_id
            ]

    def get_by_character_id(self, character_id: str) -> CharacterDraft:
        with self._lock:
            for draft in self._drafts.values():
                if draft.character_id == character_id:
                    return copy.deepcopy(draft)
        raise NotFoundError(
            f"No draft for character: {character_id}"
        ).with_context(character_id=character_id)


class JsonCharacterStore(CharacterStore):
    """
    Character store backed by a single JSON vault file.

    Layout:
        {
          "version": "1.0.0",
          "created_at": "...",
          "characters": {
            "<id>": {"id": ..., "created_at": ..., "last_modified": ..., "character": {...}}
          }
        }

    The whole file is read and rewritten on every call, under a lock.
    """

    def __init__(self, vault_path: Optional[Path] = None):
        """
        Initialize the vault.

        Args:
            vault_path: Path to character_vault.json (defaults to ~/.dnd_builder/character_vault.json)
        """
        if vault_path is None:
            vault_path = Path.home() / ".dnd_builder" / "character_vault.json"

        self.vault_path = Path(vault_path)
        self._lock = threading.Lock()
        self.vault_path.parent.mkdir(parents=True, exist_ok=True)

        if not self.vault_path.exists():
            self._initialize_vault()

    def _initialize_vault(self) -> None:
        """Create empty vault file with proper structure."""
        self._save_vault({
            "version": VAULT_VERSION,
            "created_at": datetime.now().isoformat(),
            "characters": {},
        })

    def _load_vault(self) -> Dict[str, Any]:
        """
        Load vault data from disk.

        Raises:
            PersistenceError: If the vault file cannot be read or is corrupted
        """
        try:
            with open(self.vault_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise PersistenceError("Corrupted vault file", cause=e).with_context(
                vault_path=str(self.vault_path)
            )
        except OSError as e:
            raise PersistenceError("Could not read vault file", cause=e).with_context(
                vault_path=str(self.vault_path)
            )

        if data.get("version") != VAULT_VERSION:
            logger.warning(
                f"Vault {self.vault_path} has version {data.get('version')}, expected {VAULT_VERSION}"
            )
        data.setdefault("characters", {})
        return data

    def _save_vault(self, vault_data: Dict[str, Any]) -> None:
        try:
            with open(self.vault_path, 'w', encoding='utf-8') as f:
                json.dump(vault_data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise PersistenceError("Could not write vault file", cause=e).with_context(
                vault_path=str(self.vault_path)
            )

    def _deserialize(self, entry: Dict[str, Any]) -> Character:
        try:
            return Character.from_dict(entry["character"])
        except (KeyError, ValueError, TypeError) as e:
            raise PersistenceError("Corrupted character entry", cause=e).with_context(
                character_id=entry.get("id")
            )

    def create(self, character: Character) -> None:
        with self._lock:
            vault_data = self._load_vault()
            if character.id in vault_data["characters"]:
                raise InvalidArgumentError(
                    f"Character ID already exists: {character.id}"
                ).with_context(character_id=character.id)

            now = datetime.now().isoformat()
            vault_data["characters"][character.id] = {
                "id": character.id,
                "created_at": now,
                "last_modified": now,
                "character": character.to_dict(),
            }
            self._save_vault(vault_data)

    def get(self, character_id: str) -> Character:
        with self._lock:
            vault_data = self._load_vault()
        entry = vault_data["characters"].get(character_id)
        if entry is None:
            raise NotFoundError(
                f"Character not found: {character_id}"
            ).with_context(character_id=character_id)
        return self._deserialize(entry)

    def update(self, character: Character) -> None:
        with self._lock:
            vault_data = self._load_vault()
            entry = vault_data["characters"].get(character.id)
            if entry is None:
                raise NotFoundError(
                    f"Character not found: {character.id}"
                ).with_context(character_id=character.id)

            entry["character"] = character.to_dict()
            entry["last_modified"] = datetime.now().isoformat()
            self._save_vault(vault_data)

    def delete(self, character_id: str) -> None:
        with self._lock:
            vault_data = self._load_vault()
            if vault_data["characters"].pop(character_id, None) is None:
                raise NotFoundError(
                    f"Character not found: {character_id}"
                ).with_context(character_id=character_id)
            self._save_vault(vault_data)

    def get_by_owner(self, owner_id: str) -> List[Character]:
        with self._lock:
            vault_data = self._load_vault()
        characters = []
        for entry in vault_data["characters"].values():
            if entry.get("character", {}).get("owner_id") == owner_id:
                characters.append(self._deserialize(entry))
        return characters

    def get_by_owner_and_realm(self, owner_id: str, realm_id: str) -> List[Character]:
        return [c for c in self.get_by_owner(owner_id) if c.realm_id == realm_id]

    def list_characters(self) -> List[Dict[str, Any]]:
        """
        Summaries of every stored character, most recently modified first.

        Entries that fail to load are logged and skipped.
        """
        with self._lock:
            vault_data = self._load_vault()

        summaries = []
        for character_id, entry in vault_data["characters"].items():
            try:
                character = self._deserialize(entry)
            except PersistenceError as e:
                logger.warning(f"Skipping unreadable vault entry {character_id}: {e}")
                continue
            summaries.append({
                "id": character_id,
                "name": character.name,
                "owner_id": character.owner_id,
                "status": character.status.value,
                "species": character.species.name if character.species else None,
                "class": character.character_class.name if character.character_class else None,
                "level": character.level,
                "last_modified": entry.get("last_modified"),
            })

        summaries.sort(key=lambda s: s.get("last_modified") or "", reverse=True)
        return summaries
