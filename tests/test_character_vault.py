# ABOUTME: Unit tests for the character and draft stores
# ABOUTME: Tests copy semantics, lookups, the JSON vault file layout and corrupted vault handling

import json
from pathlib import Path

import pytest

from dnd_builder.core.abilities import AbilityScore, Attribute
from dnd_builder.core.character import Character, CharacterStatus
from dnd_builder.core.character_draft import CharacterDraft
from dnd_builder.core.character_vault import (
    VAULT_VERSION,
    InMemoryCharacterStore,
    InMemoryDraftStore,
    JsonCharacterStore,
)
from dnd_builder.core.errors import InvalidArgumentError, NotFoundError, PersistenceError
from dnd_builder.systems.resources import ResourcePool


@pytest.fixture
def vault_path(tmp_path):
    return tmp_path / "vault" / "character_vault.json"


@pytest.fixture
def vault(vault_path):
    """Create a JsonCharacterStore in a temporary directory"""
    return JsonCharacterStore(vault_path)


@pytest.fixture
def sample_character(catalog_rules):
    """A finished dwarf fighter"""
    character = Character(
        id="char-1",
        owner_id="user-1",
        realm_id="realm-1",
        name="Brunhild",
        status=CharacterStatus.ACTIVE,
        species=catalog_rules.get_species("dwarf"),
        character_class=catalog_rules.get_class("fighter"),
        attributes={attribute: AbilityScore.from_score(12) for attribute in Attribute},
        max_hit_points=12,
        current_hit_points=12,
        armor_class=16,
        speed=25,
    )
    character.inventory.add_item(catalog_rules.get_equipment("chain-mail"))
    character.inventory.equip_item("chain-mail")
    character.add_resource_pool(ResourcePool(name="second_wind", current=1, maximum=1))
    return character


@pytest.fixture(params=["memory", "json"])
def store(request, tmp_path):
    """Each character store implementation"""
    if request.param == "memory":
        return InMemoryCharacterStore()
    return JsonCharacterStore(tmp_path / "character_vault.json")


class TestCharacterStoreContract:
    """Behavior shared by every character store"""

    def test_create_and_get(self, store, sample_character):
        """Test a stored character comes back intact"""
        store.create(sample_character)
        loaded = store.get("char-1")

        assert loaded.name == "Brunhild"
        assert loaded.status == CharacterStatus.ACTIVE
        assert loaded.species.key == "dwarf"
        assert loaded.attributes[Attribute.CONSTITUTION].score == 12
        assert loaded.inventory.body_armor().key == "chain-mail"
        assert loaded.get_resource_pool("second_wind").maximum == 1

    def test_duplicate_create(self, store, sample_character):
        """Test that creating the same id twice fails"""
        store.create(sample_character)

        with pytest.raises(InvalidArgumentError):
            store.create(sample_character)

    def test_get_returns_copies(self, store, sample_character):
        """Test that changing a loaded character does not change the store"""
        store.create(sample_character)
        loaded = store.get("char-1")
        loaded.name = "Changed"

        assert store.get("char-1").name == "Brunhild"

    def test_update(self, store, sample_character):
        """Test updating a stored character"""
        store.create(sample_character)
        sample_character.current_hit_points = 5
        store.update(sample_character)

        assert store.get("char-1").current_hit_points == 5

    def test_update_unknown(self, store, sample_character):
        """Test that updating a character never created fails"""
        with pytest.raises(NotFoundError):
            store.update(sample_character)

    def test_delete(self, store, sample_character):
        """Test deleting a character"""
        store.create(sample_character)
        store.delete("char-1")

        with pytest.raises(NotFoundError):
            store.get("char-1")
        with pytest.raises(NotFoundError):
            store.delete("char-1")

    def test_lookups_by_owner_and_realm(self, store, sample_character):
        """Test owner and owner+realm filters"""
        store.create(sample_character)
        other_realm = sample_character.copy()
        other_realm.id = "char-2"
        other_realm.realm_id = "realm-2"
        store.create(other_realm)
        other_owner = sample_character.copy()
        other_owner.id = "char-3"
        other_owner.owner_id = "user-2"
        store.create(other_owner)

        assert {c.id for c in store.get_by_owner("user-1")} == {"char-1", "char-2"}
        assert [c.id for c in store.get_by_owner_and_realm("user-1", "realm-2")] == ["char-2"]
        assert store.get_by_owner("nobody") == []


class TestJsonVaultFile:
    """Tests specific to the JSON vault"""

    def test_init_creates_vault(self, vault, vault_path):
        """Test that a new vault file is written with the current version"""
        data = json.loads(vault_path.read_text())

        assert data["version"] == VAULT_VERSION
        assert data["characters"] == {}

    def test_init_with_default_path(self, monkeypatch, tmp_path):
        """Test the default vault lives under the home directory"""
        monkeypatch.setattr(Path, "home", lambda: tmp_path)

        vault = JsonCharacterStore()

        assert vault.vault_path == tmp_path / ".dnd_builder" / "character_vault.json"
        assert vault.vault_path.exists()

    def test_entry_layout(self, vault, vault_path, sample_character):
        """Test each entry wraps the character with timestamps"""
        vault.create(sample_character)
        entry = json.loads(vault_path.read_text())["characters"]["char-1"]

        assert entry["id"] == "char-1"
        assert "created_at" in entry and "last_modified" in entry
        assert entry["character"]["status"] == "active"

    def test_corrupted_vault(self, vault, vault_path):
        """Test that an unreadable vault raises PersistenceError"""
        vault_path.write_text("{ not json")

        with pytest.raises(PersistenceError) as exc_info:
            vault.get("char-1")

        assert exc_info.value.context["vault_path"] == str(vault_path)

    def test_corrupted_entry(self, vault, vault_path, sample_character):
        """Test that a damaged entry raises PersistenceError on load"""
        vault.create(sample_character)
        data = json.loads(vault_path.read_text())
        del data["characters"]["char-1"]["character"]["owner_id"]
        vault_path.write_text(json.dumps(data))

        with pytest.raises(PersistenceError):
            vault.get("char-1")

    def test_list_characters(self, vault, vault_path, sample_character):
        """Test summaries skip unreadable entries"""
        vault.create(sample_character)
        data = json.loads(vault_path.read_text())
        data["characters"]["broken"] = {"id": "broken", "character": {"name": "?"}}
        vault_path.write_text(json.dumps(data))

        summaries = vault.list_characters()

        assert len(summaries) == 1
        assert summaries[0]["name"] == "Brunhild"
        assert summaries[0]["species"] == "Dwarf"
        assert summaries[0]["class"] == "Fighter"
        assert summaries[0]["status"] == "active"

    def test_version_mismatch_warns(self, vault, vault_path, caplog):
        """Test that an unexpected vault version is logged but still read"""
        vault_path.write_text(json.dumps({"version": "0.1", "characters": {}}))

        assert vault.get_by_owner("user-1") == []
        assert "0.1" in caplog.text


class TestInMemoryDraftStore:
    """Tests for the draft store"""

    def make_draft(self, draft_id="draft-1", character_id="char-1", realm_id="realm-1"):
        return CharacterDraft(
            id=draft_id, owner_id="user-1", realm_id=realm_id, character_id=character_id
        )

    def test_create_get_delete(self):
        """Test the basic draft lifecycle"""
        store = InMemoryDraftStore()
        store.create(self.make_draft())

        assert store.get("draft-1").character_id == "char-1"

        store.delete("draft-1")
        with pytest.raises(NotFoundError):
            store.get("draft-1")

    def test_get_by_character_id(self):
        """Test finding the draft that wraps a character"""
        store = InMemoryDraftStore()
        store.create(self.make_draft())

        assert store.get_by_character_id("char-1").id == "draft-1"
        with pytest.raises(NotFoundError):
            store.get_by_character_id("char-9")

    def test_get_by_owner_and_realm(self):
        """Test realm filtering"""
        store = InMemoryDraftStore()
        store.create(self.make_draft())
        store.create(self.make_draft("draft-2", "char-2", realm_id="realm-2"))

        assert [d.id for d in store.get_by_owner_and_realm("user-1", "realm-2")] == ["draft-2"]

    def test_duplicate_and_unknown_update(self):
        """Test duplicate creates and updates of unknown drafts fail"""
        store = InMemoryDraftStore()
        store.create(self.make_draft())

        with pytest.raises(InvalidArgumentError):
            store.create(self.make_draft())
        with pytest.raises(NotFoundError):
            store.update(self.make_draft("draft-9"))
