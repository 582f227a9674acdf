"""
Tests for the vault, crypto and task services
"""

from datetime import date, timedelta

import pytest

from devlife.models.records import Priority, SyncStatus
from devlife.services.crypto import DecryptionError, FernetCipher, derive_key
from devlife.services.storage import NotFoundError
from devlife.services.tasks import TaskService
from devlife.services.vault import VaultService


# Low iteration count keeps key derivation fast in tests
ITERATIONS = 1_000


@pytest.fixture
def cipher():
    return FernetCipher.from_passphrase("correct horse", iterations=ITERATIONS)


@pytest.fixture
def vault(store, cipher):
    return VaultService(store, cipher)


@pytest.fixture
def tasks(store, clock):
    return TaskService(store, clock=clock)


class TestCrypto:
    """Tests for key derivation and the Fernet cipher."""

    def test_derive_key_is_deterministic(self):
        first = derive_key("secret", "devlife-salt", ITERATIONS)
        second = derive_key("secret", "devlife-salt", ITERATIONS)
        assert first == second
        assert len(first) == 44

    def test_salt_changes_key(self):
        assert derive_key("secret", "a", ITERATIONS) != derive_key("secret", "b", ITERATIONS)

    def test_round_trip(self, cipher):
        token = cipher.encrypt("sk-live-123")
        assert token != "sk-live-123"
        assert cipher.decrypt(token) == "sk-live-123"

    def test_wrong_passphrase_fails(self, cipher):
        token = cipher.encrypt("sk-live-123")
        other = FernetCipher.from_passphrase("wrong", iterations=ITERATIONS)
        with pytest.raises(DecryptionError):
            other.decrypt(token)

    def test_garbage_ciphertext_fails(self, cipher):
        with pytest.raises(DecryptionError):
            cipher.decrypt("not-a-token")


class TestVaultService:
    """Tests for storing and revealing API keys."""

    def test_add_key_stores_ciphertext_only(self, vault, store):
        entry = vault.add_key("OpenAI", "sk-live-123", project_id="p1")
        stored = store.get("vault", entry.id)
        assert stored.service_name == "OpenAI"
        assert stored.expiry_date == "No Expiry"
        assert stored.project_id == "p1"
        assert "sk-live-123" not in stored.encrypted_key
        assert stored.sync_status == SyncStatus.PENDING

    def test_reveal(self, vault):
        entry = vault.add_key("GitHub", "ghp_abc")
        assert vault.reveal(entry.id) == "ghp_abc"

    def test_rotate_key(self, vault, clock):
        entry = vault.add_key("GitHub", "ghp_old", expiry_date="2025-01-01")
        clock.advance(1)
        rotated = vault.rotate_key(entry.id, "ghp_new")
        assert rotated.expiry_date == "2025-01-01"
        assert rotated.created_at == entry.created_at
        assert vault.reveal(entry.id) == "ghp_new"

    def test_removed_entry_cannot_be_revealed(self, vault, store):
        entry = vault.add_key("GitHub", "ghp_abc")
        vault.remove(entry.id)
        assert store.get_state().vault == []
        with pytest.raises(NotFoundError):
            vault.reveal(entry.id)

    def test_missing_entry(self, vault):
        with pytest.raises(NotFoundError):
            vault.reveal("nope")
        with pytest.raises(NotFoundError):
            vault.rotate_key("nope", "x")

    def test_requires_name_and_secret(self, vault, store):
        with pytest.raises(ValueError):
            vault.add_key("  ", "secret")
        with pytest.raises(ValueError):
            vault.add_key("GitHub", "")
        assert store.get_raw_data().vault == {}


class TestTaskService:
    """Tests for task actions."""

    def test_save_task_defaults_due_date_to_today(self, tasks, clock):
        task = tasks.save_task("  Write docs  ", priority=Priority.HIGH)
        assert task.title == "Write docs"
        assert task.due_date == clock.now.date()
        assert task.completed is False

    def test_save_task_update_keeps_completed(self, tasks, clock):
        task = tasks.save_task("Write docs")
        tasks.toggle_completed(task.id)
        clock.advance(1)
        updated = tasks.save_task("Write better docs", due_date=date(2024, 2, 1), task_id=task.id)
        assert updated.completed is True
        assert updated.title == "Write better docs"
        assert updated.due_date == date(2024, 2, 1)

    def test_blank_title_rejected(self, tasks):
        with pytest.raises(ValueError):
            tasks.save_task("   ")

    def test_toggle_completed(self, tasks, store):
        task = tasks.save_task("Write docs")
        store.mark_synced("tasks", task.id)
        toggled = tasks.toggle_completed(task.id)
        assert toggled.completed is True
        assert toggled.sync_status == SyncStatus.PENDING
        assert tasks.toggle_completed(task.id).completed is False

    def test_snooze_moves_reminder(self, tasks, clock):
        task = tasks.save_task("Call client", reminder_time=clock.now)
        snoozed = tasks.snooze(task.id, 15)
        assert snoozed.reminder_time == clock.now + timedelta(minutes=15)

    def test_snooze_requires_positive_minutes(self, tasks):
        task = tasks.save_task("Call client")
        with pytest.raises(ValueError):
            tasks.snooze(task.id, 0)

    def test_due_reminders(self, tasks, clock):
        late = tasks.save_task("Late", reminder_time=clock.now - timedelta(minutes=30))
        early = tasks.save_task("Earlier", reminder_time=clock.now - timedelta(hours=2))
        tasks.save_task("Future", reminder_time=clock.now + timedelta(hours=1))
        done = tasks.save_task("Done", reminder_time=clock.now - timedelta(minutes=5))
        tasks.toggle_completed(done.id)
        tasks.save_task("No reminder")

        due = tasks.due_reminders()

        assert [t.id for t in due] == [early.id, late.id]

    def test_missing_task(self, tasks):
        with pytest.raises(NotFoundError):
            tasks.toggle_completed("nope")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
