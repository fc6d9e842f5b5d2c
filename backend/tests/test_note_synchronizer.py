"""
NoteSync Backend — Note Synchronizer Unit Tests
=================================================

What:  Tests for refresh / create / delete orchestration.
Why:   The order of remote calls is the synchronizer's whole contract: a record
       before its upload, an upload before the refresh, nothing at all when
       validation fails.
How:   Both gateways are in-memory fakes (tests/fakes.py) sharing one call
       log, so a single list shows the interleaving across both services.

What we test:
    ✅ Create with image: create → upload → list → resolve
    ✅ Create without image: no upload, no list
    ✅ Validation and precondition failures make zero remote calls
    ✅ Delete removes the record only; images stay in storage
    ✅ One broken image never fails a refresh
    ✅ Upload failure rolls the record back (and reports when it cannot)
    ✅ Timeouts and unexpected gateway exceptions become remote errors
    ✅ A slow, stale refresh never overwrites a newer one
"""

import asyncio

import pytest

from fakes import IDENTITY
from notesync.exceptions import (
    NotFoundError,
    PreconditionError,
    RemoteReadError,
    RemoteWriteError,
    UploadError,
    ValidationError,
)
from notesync.schemas.note import ImageUpload, Note, ResolvedImage, StoredImage
from notesync.services.note_synchronizer import NoteSynchronizer

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


def _shared_log(records, storage):
    storage.calls = records.calls
    return records.calls


class TestConstruction:

    def test_identity_required(self, records, storage):
        with pytest.raises(ValidationError):
            NoteSynchronizer(records=records, storage=storage, identity="")

    def test_starts_with_no_notes(self, synchronizer):
        assert synchronizer.notes == ()
        assert synchronizer.get("note-1") is None


class TestCreate:
    """Tests for create(), with and without an image."""

    @pytest.mark.asyncio
    async def test_create_with_image_orders_calls(self, synchronizer, records, storage):
        """Record first, upload under the new id, then refresh and resolve."""
        log = _shared_log(records, storage)

        note = await synchronizer.create(
            name="Groceries",
            description="milk, eggs",
            image=ImageUpload(file_name="list.png", content=PNG),
        )

        path = f"media/{IDENTITY}/note-1/list.png"
        assert log == [
            ("create", IDENTITY, "Groceries", "milk, eggs", "list.png"),
            ("upload", path),
            ("list_notes", IDENTITY),
            ("resolve_url", path),
        ]
        assert storage.objects[path] == PNG
        assert note.id == "note-1"
        assert note.image == ResolvedImage(path=path, url=f"https://storage.test/{path}?token=signed")
        assert synchronizer.notes == (note,)

    @pytest.mark.asyncio
    async def test_create_without_image_skips_upload_and_refresh(self, synchronizer, records, storage):
        log = _shared_log(records, storage)

        note = await synchronizer.create(name="Todo", description="call mom")

        assert log == [("create", IDENTITY, "Todo", "call mom", None)]
        assert note.image is None
        assert synchronizer.notes == (note,)

    @pytest.mark.asyncio
    async def test_create_without_image_then_refresh(self, synchronizer):
        created = await synchronizer.create(name="Todo", description="call mom")

        notes = await synchronizer.refresh()

        assert len(notes) == 1
        assert notes[0].id == created.id
        assert (notes[0].name, notes[0].description, notes[0].image) == ("Todo", "call mom", None)

    @pytest.mark.asyncio
    async def test_create_without_image_appends_to_displayed_notes(self, synchronizer, records):
        records.seed(IDENTITY, "abc", "First", "one")
        await synchronizer.refresh()

        created = await synchronizer.create(name="Second", description="two")

        assert [n.id for n in synchronizer.notes] == ["abc", created.id]

    @pytest.mark.asyncio
    async def test_create_without_image_after_overlapping_refresh_lists_note_once(self, synchronizer, records):
        """A refresh that lands between commit and return already shows the note."""
        committed = records.hold("create")

        creating = asyncio.create_task(synchronizer.create(name="Groceries", description="Milk, eggs"))
        for _ in range(5):
            await asyncio.sleep(0)
        await synchronizer.refresh()
        committed.set()
        created = await creating

        assert [n.id for n in synchronizer.notes] == [created.id]

    @pytest.mark.asyncio
    async def test_empty_file_name_means_no_image(self, synchronizer, records, storage):
        log = _shared_log(records, storage)

        note = await synchronizer.create(
            name="Todo",
            description="call mom",
            image=ImageUpload(file_name="", content=b""),
        )

        assert log == [("create", IDENTITY, "Todo", "call mom", None)]
        assert note.image is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name,description", [("", "body"), ("Title", ""), ("   ", "body")])
    async def test_blank_fields_make_no_remote_calls(self, synchronizer, records, storage, name, description):
        log = _shared_log(records, storage)

        with pytest.raises(ValidationError):
            await synchronizer.create(
                name=name,
                description=description,
                image=ImageUpload(file_name="list.png", content=PNG),
            )

        assert log == []

    @pytest.mark.asyncio
    async def test_file_name_with_directories_rejected_before_create(self, synchronizer, records, storage):
        log = _shared_log(records, storage)

        with pytest.raises(ValidationError):
            await synchronizer.create(
                name="Sneaky",
                description="path",
                image=ImageUpload(file_name="../other/list.png", content=PNG),
            )

        assert log == []

    @pytest.mark.asyncio
    async def test_record_failure_skips_upload(self, synchronizer, records, storage):
        records.failures["create"] = RemoteWriteError()

        with pytest.raises(RemoteWriteError):
            await synchronizer.create(
                name="Groceries",
                description="milk",
                image=ImageUpload(file_name="list.png", content=PNG),
            )

        assert storage.calls == []
        assert synchronizer.notes == ()

    @pytest.mark.asyncio
    async def test_upload_failure_rolls_record_back(self, synchronizer, records, storage):
        storage.failures["upload"] = RemoteWriteError()

        with pytest.raises(UploadError) as exc_info:
            await synchronizer.create(
                name="Groceries",
                description="milk",
                image=ImageUpload(file_name="list.png", content=PNG),
            )

        error = exc_info.value
        assert error.note_id == "note-1"
        assert error.path == f"media/{IDENTITY}/note-1/list.png"
        assert error.record_rolled_back is True
        assert records.ids(IDENTITY) == []
        assert records.operations() == ["create", "delete"]
        assert synchronizer.notes == ()

    @pytest.mark.asyncio
    async def test_upload_failure_reports_failed_rollback(self, synchronizer, records, storage):
        storage.failures["upload"] = RemoteWriteError()
        records.failures["delete"] = RemoteWriteError()

        with pytest.raises(UploadError) as exc_info:
            await synchronizer.create(
                name="Groceries",
                description="milk",
                image=ImageUpload(file_name="list.png", content=PNG),
            )

        assert exc_info.value.record_rolled_back is False
        assert records.ids(IDENTITY) == ["note-1"]

    @pytest.mark.asyncio
    async def test_upload_error_is_a_remote_write_error(self, synchronizer, storage):
        storage.failures["upload"] = OSError("disk full")

        with pytest.raises(RemoteWriteError):
            await synchronizer.create(
                name="Groceries",
                description="milk",
                image=ImageUpload(file_name="list.png", content=PNG),
            )

    @pytest.mark.asyncio
    async def test_concurrent_creates_are_serialized(self, synchronizer, records, storage):
        log = _shared_log(records, storage)
        storage.delays["upload"] = 0.01

        await asyncio.gather(
            synchronizer.create(
                name="A", description="a", image=ImageUpload(file_name="a.png", content=PNG)
            ),
            synchronizer.create(
                name="B", description="b", image=ImageUpload(file_name="b.png", content=PNG)
            ),
        )

        operations = [call[0] for call in log]
        second_create = operations.index("create", 1)
        assert operations[:second_create] == ["create", "upload", "list_notes", "resolve_url"]
        assert len(synchronizer.notes) == 2


class TestDelete:
    """Tests for delete()."""

    @pytest.mark.asyncio
    async def test_delete_removes_record_then_refreshes(self, synchronizer, records, storage):
        records.seed(IDENTITY, "abc", "Old", "gone soon", image="photo.jpg")
        records.seed(IDENTITY, "def", "Keep", "stays")
        await synchronizer.refresh()
        storage.calls.clear()
        records.calls.clear()

        await synchronizer.delete(synchronizer.get("abc"))

        assert records.calls == [("delete", IDENTITY, "abc"), ("list_notes", IDENTITY)]
        assert storage.calls == []
        assert [n.id for n in synchronizer.notes] == ["def"]

    @pytest.mark.asyncio
    async def test_delete_leaves_stored_image(self, synchronizer, records, storage):
        note = await synchronizer.create(
            name="Groceries",
            description="milk",
            image=ImageUpload(file_name="list.png", content=PNG),
        )

        await synchronizer.delete(note)

        assert f"media/{IDENTITY}/note-1/list.png" in storage.objects
        assert synchronizer.notes == ()

    @pytest.mark.asyncio
    async def test_unsaved_note_makes_no_remote_calls(self, synchronizer, records, storage):
        log = _shared_log(records, storage)

        with pytest.raises(PreconditionError):
            await synchronizer.delete(Note(name="Draft", description="never saved"))

        assert log == []

    @pytest.mark.asyncio
    async def test_unknown_note_raises_not_found(self, synchronizer):
        with pytest.raises(NotFoundError):
            await synchronizer.delete(Note(id="missing", name="x", description="y"))


class TestRefresh:
    """Tests for refresh() and URL resolution."""

    @pytest.mark.asyncio
    async def test_resolves_images_in_record_order(self, synchronizer, records):
        records.seed(IDENTITY, "n1", "One", "1", image="a.png")
        records.seed(IDENTITY, "n2", "Two", "2")
        records.seed(IDENTITY, "n3", "Three", "3", image="c.jpg")

        notes = await synchronizer.refresh()

        assert [n.id for n in notes] == ["n1", "n2", "n3"]
        assert isinstance(notes[0].image, ResolvedImage)
        assert notes[0].image.path == f"media/{IDENTITY}/n1/a.png"
        assert notes[1].image is None
        assert notes[2].image.path == f"media/{IDENTITY}/n3/c.jpg"
        assert synchronizer.notes == tuple(notes)

    @pytest.mark.asyncio
    async def test_one_broken_image_does_not_fail_refresh(self, synchronizer, records, storage):
        records.seed(IDENTITY, "n1", "Broken", "1", image="a.png")
        records.seed(IDENTITY, "n2", "Fine", "2", image="b.png")
        storage.broken_paths.add(f"media/{IDENTITY}/n1/a.png")

        notes = await synchronizer.refresh()

        assert [n.id for n in notes] == ["n1", "n2"]
        assert notes[0].image is None
        assert isinstance(notes[1].image, ResolvedImage)

    @pytest.mark.asyncio
    async def test_refresh_is_idempotent_and_read_only(self, synchronizer, records, storage):
        records.seed(IDENTITY, "n1", "One", "1", image="a.png")

        first = await synchronizer.refresh()
        second = await synchronizer.refresh()

        assert first == second
        assert set(records.operations()) == {"list_notes"}
        assert set(storage.operations()) == {"resolve_url"}
        assert storage.objects == {}

    @pytest.mark.asyncio
    async def test_refresh_only_lists_own_notes(self, synchronizer, records):
        records.seed(IDENTITY, "mine", "Mine", "1")
        records.seed("someone-else", "theirs", "Theirs", "2")

        notes = await synchronizer.refresh()

        assert [n.id for n in notes] == ["mine"]

    @pytest.mark.asyncio
    async def test_list_failure_keeps_previous_notes(self, synchronizer, records):
        records.seed(IDENTITY, "n1", "One", "1")
        before = await synchronizer.refresh()
        records.failures["list_notes"] = RemoteReadError()

        with pytest.raises(RemoteReadError):
            await synchronizer.refresh()

        assert synchronizer.notes == tuple(before)

    @pytest.mark.asyncio
    async def test_unexpected_gateway_exception_is_wrapped(self, synchronizer, records):
        records.failures["list_notes"] = RuntimeError("connection reset")

        with pytest.raises(RemoteReadError) as exc_info:
            await synchronizer.refresh()

        assert exc_info.value.context["error_type"] == "RuntimeError"

    @pytest.mark.asyncio
    async def test_slow_list_times_out(self, records, storage):
        synchronizer = NoteSynchronizer(
            records=records, storage=storage, identity=IDENTITY, call_timeout=0.05
        )
        records.delays["list_notes"] = 1.0

        with pytest.raises(RemoteReadError) as exc_info:
            await synchronizer.refresh()

        assert exc_info.value.context["timeout"] == 0.05

    @pytest.mark.asyncio
    async def test_slow_resolution_drops_only_that_image(self, records, storage):
        synchronizer = NoteSynchronizer(
            records=records, storage=storage, identity=IDENTITY, call_timeout=0.05
        )
        records.seed(IDENTITY, "n1", "One", "1", image="a.png")
        storage.delays["resolve_url"] = 1.0

        notes = await synchronizer.refresh()

        assert [n.id for n in notes] == ["n1"]
        assert notes[0].image is None

    @pytest.mark.asyncio
    async def test_stale_refresh_does_not_overwrite_newer(self, synchronizer, records):
        records.seed(IDENTITY, "n1", "One", "1")
        release = records.hold("list_notes")

        slow = asyncio.create_task(synchronizer.refresh())
        for _ in range(5):
            await asyncio.sleep(0)

        records.seed(IDENTITY, "n2", "Two", "2")
        fresh = await synchronizer.refresh()
        release.set()
        stale = await slow

        assert [n.id for n in stale] == ["n1"]
        assert [n.id for n in fresh] == ["n1", "n2"]
        assert [n.id for n in synchronizer.notes] == ["n1", "n2"]

    @pytest.mark.asyncio
    async def test_record_image_stays_stored_reference(self, synchronizer, records):
        """Listing never rewrites the persisted file name into a URL."""
        records.seed(IDENTITY, "n1", "One", "1", image="a.png")

        await synchronizer.refresh()
        relisted = await records.list_notes(IDENTITY)

        assert relisted[0].image == StoredImage(file_name="a.png")
