"""Tests for the transcription store."""

import asyncio
import json
from datetime import timedelta

import pytest

from src.db.backend import InMemoryBackend
from src.db.codec import encode_index
from src.db.keys import INDEX_PREFIX, PRIMARY_PREFIX, index_key, primary_key
from src.db.models import FileMeta, TranscriptionPatch, TranscriptionStatus
from src.services.asr import TranscriptionResult
from src.services.errors import NotFoundError, ValidationError
from src.services.transcription_store import MAX_FILE_SIZE_BYTES, TranscriptionStore


class FlakyBackend(InMemoryBackend):
    """In-memory backend whose writes fail for keys with a given prefix."""

    def __init__(self, fail_prefix: str):
        super().__init__()
        self.fail_prefix = fail_prefix

    async def put(self, key, value, ttl_seconds=None):
        if key.startswith(self.fail_prefix):
            raise ConnectionError(f"write to {key} failed")
        await super().put(key, value, ttl_seconds)


# ============== create / get ==============


@pytest.mark.asyncio
async def test_create_then_get_returns_same_record(store, file_meta, producer_result):
    """A created record reads back unchanged."""
    created = await store.create("u1", file_meta, producer_result)

    fetched = await store.get(created.id)

    assert fetched == created


@pytest.mark.asyncio
async def test_create_sets_status_and_timestamps(store, clock, file_meta, producer_result):
    """Creation marks the record completed and sets expiry one TTL later."""
    created = await store.create("u1", file_meta, producer_result)

    assert created.status == TranscriptionStatus.COMPLETED
    assert created.owner_id == "u1"
    assert created.file_size_bytes == 1000
    assert created.mime_type == "audio/wav"
    assert created.text == "Hello world"
    assert created.confidence == 0.95
    assert created.created_at == clock()
    assert created.expires_at == clock() + timedelta(hours=24)


@pytest.mark.asyncio
async def test_create_generates_unique_ids(store, file_meta, producer_result):
    """Every creation gets a fresh id."""
    ids = {(await store.create("u1", file_meta, producer_result)).id for _ in range(20)}

    assert len(ids) == 20


@pytest.mark.asyncio
async def test_create_writes_record_and_index(store, backend, file_meta, producer_result):
    """Creation writes the primary key and appends to the owner index."""
    created = await store.create("u1", file_meta, producer_result)

    assert await backend.get(primary_key(created.id)) is not None
    assert await backend.get(index_key("u1")) == encode_index([created.id])


@pytest.mark.asyncio
async def test_create_rejects_unsupported_mime_type(store, backend, producer_result):
    """A video upload is rejected before anything is written."""
    await store.create(
        "u1", FileMeta("a.wav", 1000, "audio/wav"), producer_result
    )
    before = await store.list_by_owner("u1")

    with pytest.raises(ValidationError) as exc_info:
        await store.create("u1", FileMeta("clip.mp4", 1000, "video/mp4"), producer_result)

    assert exc_info.value.field == "mime_type"
    assert await store.list_by_owner("u1") == before
    assert len(await backend.scan_keys_by_prefix(PRIMARY_PREFIX)) == 1


@pytest.mark.asyncio
async def test_create_rejects_oversized_file(store, backend, producer_result):
    """Files above 25MB are rejected and the store is left untouched."""
    meta = FileMeta("big.wav", MAX_FILE_SIZE_BYTES + 1, "audio/wav")

    with pytest.raises(ValidationError) as exc_info:
        await store.create("u1", meta, producer_result)

    assert exc_info.value.field == "file_size_bytes"
    assert await store.list_by_owner("u1") == []
    assert await backend.scan_keys_by_prefix("") == []


@pytest.mark.asyncio
async def test_create_accepts_file_at_size_limit(store, producer_result):
    """Exactly 25MB is allowed."""
    meta = FileMeta("big.wav", MAX_FILE_SIZE_BYTES, "audio/wav")

    created = await store.create("u1", meta, producer_result)

    assert created.file_size_bytes == MAX_FILE_SIZE_BYTES


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "owner_id,meta,field",
    [
        ("", FileMeta("a.wav", 10, "audio/wav"), "owner_id"),
        ("u1", FileMeta("", 10, "audio/wav"), "filename"),
        ("u1", FileMeta("a.wav", 0, "audio/wav"), "file_size_bytes"),
        ("u1", FileMeta("a.wav", 10, ""), "mime_type"),
        ("u1", FileMeta("a.wav", 10, "audio/wav", duration_seconds=-1.0), "duration_seconds"),
    ],
)
async def test_create_rejects_missing_fields(store, backend, producer_result, owner_id, meta, field):
    """Each invalid input is reported by name and nothing is stored."""
    with pytest.raises(ValidationError) as exc_info:
        await store.create(owner_id, meta, producer_result)

    assert exc_info.value.field == field
    assert await backend.scan_keys_by_prefix("") == []


@pytest.mark.asyncio
async def test_create_rejects_confidence_out_of_range(store, backend, file_meta):
    """Producer confidence must lie in [0, 1]."""
    with pytest.raises(ValidationError):
        await store.create("u1", file_meta, TranscriptionResult(text="x", confidence=1.5))

    assert await backend.scan_keys_by_prefix("") == []


@pytest.mark.asyncio
async def test_create_allows_unknown_confidence(store, file_meta):
    """Confidence and duration may be unset."""
    created = await store.create("u1", file_meta, TranscriptionResult(text="x"))

    assert created.confidence is None
    assert created.duration_seconds is None


@pytest.mark.asyncio
async def test_create_survives_index_write_failure(clock, file_meta, producer_result):
    """If the index append fails the record is still readable by id."""
    store = TranscriptionStore(FlakyBackend(INDEX_PREFIX), clock=clock)

    created = await store.create("u1", file_meta, producer_result)

    assert await store.get(created.id) == created
    assert await store.list_by_owner("u1") == []


@pytest.mark.asyncio
async def test_create_propagates_primary_write_failure(clock, file_meta, producer_result):
    """A failing record write is raised to the caller and nothing is indexed."""
    backend = FlakyBackend(PRIMARY_PREFIX)
    store = TranscriptionStore(backend, clock=clock)

    with pytest.raises(ConnectionError):
        await store.create("u1", file_meta, producer_result)

    assert await backend.get(index_key("u1")) is None


@pytest.mark.asyncio
async def test_create_sets_backend_ttl_with_grace(clock, file_meta, producer_result):
    """Records carry a backend TTL of their remaining lifetime plus grace."""
    backend = InMemoryBackend(clock=lambda: 1000.0)
    store = TranscriptionStore(backend, ttl_seconds=86400, expiry_grace_seconds=60, clock=clock)

    created = await store.create("u1", file_meta, producer_result)

    assert backend.ttl(primary_key(created.id)) == 86400 + 60
    assert backend.ttl(index_key("u1")) is None


def test_store_rejects_non_positive_ttl(backend):
    """Expiry must come after creation, so the TTL has to be positive."""
    with pytest.raises(ValueError):
        TranscriptionStore(backend, ttl_seconds=0)


@pytest.mark.asyncio
async def test_get_unknown_id(store):
    """Getting an id that was never created raises NotFoundError."""
    with pytest.raises(NotFoundError) as exc_info:
        await store.get("does-not-exist")

    assert exc_info.value.transcription_id == "does-not-exist"


@pytest.mark.asyncio
async def test_get_corrupt_record_is_not_found(store, backend):
    """A record that fails to decode reads as missing."""
    await backend.put(primary_key("broken"), "{not json")

    with pytest.raises(NotFoundError):
        await store.get("broken")


# ============== list_by_owner ==============


@pytest.mark.asyncio
async def test_list_returns_newest_first(store, clock, file_meta, producer_result):
    """Records created at t=0 and t=1 are listed as [t=1, t=0]."""
    first = await store.create("u1", file_meta, producer_result)
    clock.advance(seconds=1)
    second = await store.create("u1", file_meta, producer_result)

    listed = await store.list_by_owner("u1")

    assert [t.id for t in listed] == [second.id, first.id]


@pytest.mark.asyncio
async def test_list_returns_all_created_records(store, clock, file_meta, producer_result):
    """N creates give N records sorted by creation time, descending."""
    for _ in range(5):
        await store.create("u1", file_meta, producer_result)
        clock.advance(minutes=1)

    listed = await store.list_by_owner("u1")

    assert len(listed) == 5
    created_times = [t.created_at for t in listed]
    assert created_times == sorted(created_times, reverse=True)


@pytest.mark.asyncio
async def test_list_keeps_index_order_for_equal_timestamps(store, file_meta, producer_result):
    """Ties on created_at keep their index order."""
    first = await store.create("u1", file_meta, producer_result)
    second = await store.create("u1", file_meta, producer_result)

    listed = await store.list_by_owner("u1")

    assert [t.id for t in listed] == [first.id, second.id]


@pytest.mark.asyncio
async def test_list_unknown_owner_is_empty(store):
    """An owner without an index has no transcriptions."""
    assert await store.list_by_owner("nobody") == []


@pytest.mark.asyncio
async def test_list_is_scoped_to_owner(store, file_meta, producer_result):
    """Records of other owners are not listed."""
    mine = await store.create("u1", file_meta, producer_result)
    await store.create("u2", file_meta, producer_result)

    assert [t.id for t in await store.list_by_owner("u1")] == [mine.id]


@pytest.mark.asyncio
async def test_list_skips_missing_and_corrupt_records(store, backend, file_meta, producer_result):
    """Indexed ids without a readable record are skipped."""
    created = await store.create("u1", file_meta, producer_result)
    await backend.put(primary_key("corrupt"), "[]")
    await backend.put(index_key("u1"), encode_index(["ghost", created.id, "corrupt"]))

    listed = await store.list_by_owner("u1")

    assert [t.id for t in listed] == [created.id]


@pytest.mark.asyncio
async def test_list_skips_records_with_naive_timestamps(
    store, backend, clock, file_meta, producer_result
):
    """Timestamps without a UTC offset make a record unreadable, not the listing."""
    kept = await store.create("u1", file_meta, producer_result)
    clock.advance(hours=1)
    naive = await store.create("u1", file_meta, producer_result)
    data = json.loads(await backend.get(primary_key(naive.id)))
    data["createdAt"] = "2024-01-01T13:00:00"
    await backend.put(primary_key(naive.id), json.dumps(data))

    listed = await store.list_by_owner("u1")

    assert [t.id for t in listed] == [kept.id]
    with pytest.raises(NotFoundError):
        await store.get(naive.id)


@pytest.mark.asyncio
async def test_list_with_corrupt_index_is_empty(store, backend, file_meta, producer_result):
    """A corrupt index reads as empty and is replaced on the next create."""
    await backend.put(index_key("u1"), "not an index")
    assert await store.list_by_owner("u1") == []

    created = await store.create("u1", file_meta, producer_result)

    assert [t.id for t in await store.list_by_owner("u1")] == [created.id]


@pytest.mark.asyncio
async def test_list_requires_owner(store):
    with pytest.raises(ValidationError):
        await store.list_by_owner("")


@pytest.mark.asyncio
async def test_concurrent_creates_for_different_owners(store, file_meta, producer_result):
    """Creates for different owners do not interfere."""
    owners = [f"user-{i}" for i in range(10)]

    created = await asyncio.gather(
        *(store.create(owner, file_meta, producer_result) for owner in owners)
    )

    for owner, record in zip(owners, created):
        assert [t.id for t in await store.list_by_owner(owner)] == [record.id]


# ============== update ==============


@pytest.mark.asyncio
async def test_update_status_changes_only_status(store, clock, file_meta, producer_result):
    """Setting status to failed leaves every other field identical."""
    before = await store.create("u1", file_meta, producer_result)
    clock.advance(hours=1)

    updated = await store.update(before.id, TranscriptionPatch(status=TranscriptionStatus.FAILED))

    assert updated.status == TranscriptionStatus.FAILED
    assert updated.model_dump(exclude={"status"}) == before.model_dump(exclude={"status"})
    assert await store.get(before.id) == updated


@pytest.mark.asyncio
async def test_update_text_and_confidence(store, file_meta, producer_result):
    """Text and confidence can be corrected after creation."""
    created = await store.create("u1", file_meta, producer_result)

    updated = await store.update(
        created.id, TranscriptionPatch(text="Corrected text", confidence=0.5)
    )

    assert updated.text == "Corrected text"
    assert updated.confidence == 0.5
    assert updated.status == created.status
    assert updated.created_at == created.created_at
    assert updated.file_size_bytes == created.file_size_bytes


@pytest.mark.asyncio
async def test_update_does_not_touch_index(store, backend, file_meta, producer_result):
    created = await store.create("u1", file_meta, producer_result)
    index_before = await backend.get(index_key("u1"))

    await store.update(created.id, TranscriptionPatch(text="new"))

    assert await backend.get(index_key("u1")) == index_before


@pytest.mark.asyncio
async def test_update_unknown_id(store):
    with pytest.raises(NotFoundError):
        await store.update("missing", TranscriptionPatch(status=TranscriptionStatus.FAILED))


@pytest.mark.asyncio
async def test_update_rejects_invalid_values(store, file_meta, producer_result):
    """Out-of-range confidence and unknown statuses are rejected."""
    created = await store.create("u1", file_meta, producer_result)

    with pytest.raises(ValidationError):
        await store.update(created.id, TranscriptionPatch(confidence=-0.1))
    with pytest.raises(ValidationError):
        await store.update(created.id, TranscriptionPatch(status="archived"))

    assert await store.get(created.id) == created


@pytest.mark.asyncio
async def test_update_rejects_wrongly_typed_values(store, file_meta, producer_result):
    """Patch values are type-checked before the record is rewritten."""
    created = await store.create("u1", file_meta, producer_result)

    with pytest.raises(ValidationError) as exc_info:
        await store.update(created.id, TranscriptionPatch(text=42))
    assert exc_info.value.field == "text"
    with pytest.raises(ValidationError) as exc_info:
        await store.update(created.id, TranscriptionPatch(confidence="high"))
    assert exc_info.value.field == "confidence"

    assert await store.get(created.id) == created


# ============== delete ==============


@pytest.mark.asyncio
async def test_delete_removes_record_and_index_entry(store, backend, file_meta, producer_result):
    """After delete the id is neither readable nor listed."""
    keep = await store.create("u1", file_meta, producer_result)
    gone = await store.create("u1", file_meta, producer_result)

    await store.delete(gone.id)

    with pytest.raises(NotFoundError):
        await store.get(gone.id)
    assert [t.id for t in await store.list_by_owner("u1")] == [keep.id]


@pytest.mark.asyncio
async def test_delete_last_record_drops_index(store, backend, file_meta, producer_result):
    created = await store.create("u1", file_meta, producer_result)

    await store.delete(created.id)

    assert await backend.get(index_key("u1")) is None


@pytest.mark.asyncio
async def test_delete_unknown_id(store):
    with pytest.raises(NotFoundError):
        await store.delete("missing")


@pytest.mark.asyncio
async def test_delete_when_index_already_cleaned(store, backend, file_meta, producer_result):
    """A record missing from its owner's index still deletes cleanly."""
    created = await store.create("u1", file_meta, producer_result)
    await backend.delete(index_key("u1"))

    await store.delete(created.id)

    with pytest.raises(NotFoundError):
        await store.get(created.id)


@pytest.mark.asyncio
async def test_delete_survives_index_write_failure(clock, file_meta, producer_result):
    """The record is removed even if rewriting the index fails."""
    backend = FlakyBackend(INDEX_PREFIX)
    store = TranscriptionStore(backend, clock=clock)
    first = await store.create("u1", file_meta, producer_result)
    second = await store.create("u1", file_meta, producer_result)
    index = encode_index([first.id, second.id])
    await InMemoryBackend.put(backend, index_key("u1"), index)

    await store.delete(first.id)

    with pytest.raises(NotFoundError):
        await store.get(first.id)
    assert await backend.get(index_key("u1")) == index
