"""
Tests for backup export/import: verbatim ciphertext, all-or-nothing import.
"""

import json

import pytest
import pytest_asyncio

from verdantvista import db
from verdantvista.backup import (
    BackupDocument,
    export_backup,
    import_backup,
    read_backup_file,
    write_backup_file,
)
from verdantvista.crypto import b64encode
from verdantvista.errors import DecryptionError, MalformedBackupError, NothingToExportError
from verdantvista.vault import Vault


@pytest_asyncio.fixture
async def saved(vault, dataset):
    """A vault saved under 'pw' and then locked."""
    await vault.unlock("pw")
    await vault.save(dataset)
    vault.lock()
    return dataset


def _blob_text(iv_len=12):
    return json.dumps({"iv": b64encode(bytes(iv_len)), "data": b64encode(b"\x01" * 20)})


class TestExport:

    @pytest.mark.asyncio
    async def test_export_is_verbatim_and_needs_no_key(self, saved):
        slots = await db.get_slots(db.ALL_SLOTS)

        doc = await export_backup()

        assert doc.salt == slots[db.SALT_SLOT]
        assert doc.data == slots[db.ENTRIES_SLOT]
        assert doc.events == slots[db.EVENTS_SLOT]

    @pytest.mark.asyncio
    async def test_export_with_nothing_stored(self, store):
        with pytest.raises(NothingToExportError):
            await export_backup()

    @pytest.mark.asyncio
    async def test_export_before_first_save(self, vault):
        await vault.unlock("pw")
        with pytest.raises(NothingToExportError):
            await export_backup()

    def test_document_wire_shape(self):
        doc = BackupDocument(salt="s", data="d")
        assert doc.to_dict() == {"salt": "s", "data": "d"}
        assert BackupDocument(salt="s", data="d", events="e").to_dict() == {
            "salt": "s",
            "data": "d",
            "events": "e",
        }


class TestImport:

    @pytest.mark.asyncio
    async def test_round_trip_keeps_vault_decryptable(self, saved):
        await import_backup(await export_backup())
        assert await Vault().unlock("pw") == saved

    @pytest.mark.asyncio
    async def test_import_moves_journal_to_another_device(self, saved, tmp_path, monkeypatch):
        doc = await export_backup()

        monkeypatch.setattr(db, "DB_PATH", str(tmp_path / "other-device.sqlite3"))
        await db.init_db()
        other = Vault()
        await other.unlock("a different password")  # first run on the new device
        other.lock()

        await import_backup(doc.to_dict())

        assert await other.unlock("pw") == saved
        with pytest.raises(DecryptionError):
            await Vault().unlock("a different password")

    @pytest.mark.asyncio
    async def test_missing_data_leaves_slots_byte_identical(self, saved):
        before = await db.get_slots(db.ALL_SLOTS)
        doc = (await export_backup()).to_dict()
        del doc["data"]

        with pytest.raises(MalformedBackupError):
            await import_backup(doc)

        assert await db.get_slots(db.ALL_SLOTS) == before

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "doc",
        [
            [],
            {"data": _blob_text()},
            {"salt": b64encode(bytes(16))},
            {"salt": None, "data": _blob_text()},
            {"salt": b64encode(bytes(8)), "data": _blob_text()},
            {"salt": "not base64!", "data": _blob_text()},
            {"salt": b64encode(bytes(16)), "data": "not json"},
            {"salt": b64encode(bytes(16)), "data": json.dumps({"iv": "AAAA"})},
            {"salt": b64encode(bytes(16)), "data": _blob_text(iv_len=16)},
            {"salt": b64encode(bytes(16)), "data": _blob_text(), "events": 42},
            {"salt": b64encode(bytes(16)), "data": json.loads(_blob_text())},
        ],
    )
    async def test_malformed_documents_are_rejected(self, saved, doc):
        before = await db.get_slots(db.ALL_SLOTS)
        with pytest.raises(MalformedBackupError):
            await import_backup(doc)
        assert await db.get_slots(db.ALL_SLOTS) == before

    @pytest.mark.asyncio
    async def test_import_without_events_clears_events_slot(self, saved):
        doc = await export_backup()
        await import_backup({"salt": doc.salt, "data": doc.data})

        assert await db.get_slot(db.EVENTS_SLOT) is None
        reopened = await Vault().unlock("pw")
        assert reopened.entries == saved.entries
        assert reopened.events == []

    @pytest.mark.asyncio
    async def test_undecryptable_but_well_formed_import_is_accepted(self, saved):
        """Structure is all import checks; the next unlock decides."""
        await import_backup({"salt": b64encode(bytes(16)), "data": _blob_text()})
        with pytest.raises(DecryptionError):
            await Vault().unlock("pw")

    def test_malformed_backup_is_also_a_value_error(self):
        with pytest.raises(ValueError):
            BackupDocument.from_dict({})


class TestBackupFiles:

    @pytest.mark.asyncio
    async def test_file_round_trip(self, saved, tmp_path):
        doc = await export_backup()
        path = write_backup_file(tmp_path / "nested" / "backup.json", doc)

        on_disk = json.loads(path.read_text(encoding="utf-8"))
        assert on_disk == {"salt": doc.salt, "data": doc.data, "events": doc.events}
        assert read_backup_file(path) == doc

    def test_non_json_file_is_malformed(self, tmp_path):
        path = tmp_path / "backup.json"
        path.write_text("<html>", encoding="utf-8")
        with pytest.raises(MalformedBackupError):
            read_backup_file(path)

    def test_missing_file_propagates(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_backup_file(tmp_path / "nope.json")
