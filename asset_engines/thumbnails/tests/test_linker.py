import pytest

from asset_engines.storage.document_store import InMemoryDocumentStore
from asset_engines.storage.errors import StorageError
from asset_engines.thumbnails.errors import PermanentLinkFailure
from asset_engines.thumbnails.linker import MetadataLinker
from asset_engines.thumbnails.models import DerivativeResult

RECORD = "users/u1/motorcycles/m1"


def _result():
    return DerivativeResult(
        bucket="bkt",
        primary_key=f"{RECORD}/bike.jpg",
        derivative_key=f"{RECORD}/thumb_bike.jpg",
        primary_url="https://signed/bike.jpg",
        derivative_url="https://signed/thumb_bike.jpg",
    )


class _Sleeps:
    def __init__(self, on_call=None):
        self.delays = []
        self.on_call = on_call

    async def __call__(self, delay):
        self.delays.append(delay)
        if self.on_call:
            self.on_call(len(self.delays))


class _FlakyStore(InMemoryDocumentStore):
    def __init__(self, failures):
        super().__init__()
        self.failures = failures
        self.calls = 0

    async def update(self, path, fields):
        self.calls += 1
        if self.calls <= self.failures:
            raise StorageError("deadline exceeded")
        return await super().update(path, fields)


def test_backoff_is_exponential():
    linker = MetadataLinker(InMemoryDocumentStore(), backoff_seconds=1.0, backoff_factor=2.0)
    assert [linker.delay_for(a) for a in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 8.0]


def test_max_attempts_must_be_positive():
    with pytest.raises(ValueError):
        MetadataLinker(InMemoryDocumentStore(), max_attempts=0)


@pytest.mark.anyio
async def test_missing_record_fails_after_exactly_max_attempts():
    sleeps = _Sleeps()
    attempts = []
    linker = MetadataLinker(InMemoryDocumentStore(), max_attempts=5, sleep=sleeps)

    with pytest.raises(PermanentLinkFailure) as excinfo:
        await linker.link(RECORD, _result(), on_attempt=attempts.append)

    assert attempts == [1, 2, 3, 4, 5]
    assert sleeps.delays == [1.0, 2.0, 4.0, 8.0]
    assert excinfo.value.attempts == 5
    assert excinfo.value.document_path == RECORD
    assert excinfo.value.requires_rollback


@pytest.mark.anyio
async def test_record_appearing_late_links_on_third_attempt():
    store = InMemoryDocumentStore()

    def create_record(calls):
        if calls == 2:
            store.set(RECORD, {"name": "bike"})

    sleeps = _Sleeps(on_call=create_record)
    linker = MetadataLinker(store, sleep=sleeps)

    attempt = await linker.link(RECORD, _result())

    assert attempt == 3
    assert sleeps.delays == [1.0, 2.0]
    doc = await store.get(RECORD)
    assert doc["name"] == "bike"
    assert doc["image"] == {
        "imageUrl": f"{RECORD}/bike.jpg",
        "imagePublicUrl": "https://signed/bike.jpg",
        "thumbnailUrl": f"{RECORD}/thumb_bike.jpg",
        "thumbnailPublicUrl": "https://signed/thumb_bike.jpg",
        "bucket": "bkt",
    }


@pytest.mark.anyio
async def test_other_store_errors_are_retried():
    store = _FlakyStore(failures=1)
    store.set(RECORD, {})
    sleeps = _Sleeps()

    attempt = await MetadataLinker(store, sleep=sleeps).link(RECORD, _result())

    assert attempt == 2
    assert store.calls == 2
    assert sleeps.delays == [1.0]


class _RejectingStore(InMemoryDocumentStore):
    def __init__(self):
        super().__init__()
        self.calls = 0

    async def update(self, path, fields):
        self.calls += 1
        raise ValueError("A document must have an even number of path elements")


@pytest.mark.anyio
async def test_unexpected_update_errors_use_the_same_attempt_bound():
    store = _RejectingStore()
    sleeps = _Sleeps()

    with pytest.raises(PermanentLinkFailure) as excinfo:
        await MetadataLinker(store, sleep=sleeps).link(RECORD, _result())

    assert store.calls == 5
    assert sleeps.delays == [1.0, 2.0, 4.0, 8.0]
    assert isinstance(excinfo.value.last_error, ValueError)
