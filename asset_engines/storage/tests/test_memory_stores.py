from datetime import timedelta

import pytest

from asset_engines.storage.blob_store import InMemoryBlobStore
from asset_engines.storage.document_store import DocumentRef, InMemoryDocumentStore, get_field
from asset_engines.storage.errors import BlobNotFound, DocumentNotFound, StorageError


@pytest.mark.anyio
async def test_document_update_merges_dotted_fields():
    store = InMemoryDocumentStore()
    store.set("users/u1/motorcycles/m1", {"name": "bike", "image": {"caption": "left side"}})

    await store.update("users/u1/motorcycles/m1", {"image.imageUrl": "a.jpg", "image.bucket": "b"})

    doc = await store.get("users/u1/motorcycles/m1")
    assert doc["name"] == "bike"
    assert doc["image"] == {"caption": "left side", "imageUrl": "a.jpg", "bucket": "b"}
    assert get_field(doc, "image.bucket") == "b"
    assert get_field(doc, "image.missing") is None


@pytest.mark.anyio
async def test_document_update_on_missing_record_raises_not_found():
    store = InMemoryDocumentStore()
    with pytest.raises(DocumentNotFound):
        await store.update("users/u1/motorcycles/ghost", {"image.imageUrl": "x"})
    assert await store.get("users/u1/motorcycles/ghost") is None


@pytest.mark.anyio
async def test_query_returns_direct_children_only_up_to_limit():
    store = InMemoryDocumentStore()
    for i in range(5):
        store.set(f"forms/f{i}", {"n": i})
    store.set("forms/f0/costs/c1", {"n": 99})
    store.set("other/o1", {})

    page = await store.query("forms", 3)

    assert page == [DocumentRef("forms/f0"), DocumentRef("forms/f1"), DocumentRef("forms/f2")]
    assert page[0].id == "f0"
    assert page[0].collection_path == "forms"
    assert await store.batch_delete(page) == 3
    assert store.paths("forms") == ["forms/f3", "forms/f4"]


@pytest.mark.anyio
async def test_blob_writer_commits_only_on_close():
    store = InMemoryBlobStore()
    writer = await store.open_write_stream("bkt", "a/thumb_x.png", "image/png")
    await writer.write(b"abc")
    await writer.write(b"def")
    assert store.get("bkt", "a/thumb_x.png") is None

    await writer.close()

    blob = store.get("bkt", "a/thumb_x.png")
    assert blob.data == b"abcdef"
    assert blob.content_type == "image/png"


@pytest.mark.anyio
async def test_aborted_blob_writer_never_commits():
    store = InMemoryBlobStore()
    writer = await store.open_write_stream("bkt", "k", None)
    await writer.write(b"partial")
    await writer.abort()

    with pytest.raises(StorageError):
        await writer.close()
    assert store.get("bkt", "k") is None


@pytest.mark.anyio
async def test_read_stream_chunks_and_missing_blob():
    store = InMemoryBlobStore()
    store.put("bkt", "k", b"0123456789")

    chunks = [c async for c in store.open_read_stream("bkt", "k", chunk_size=4)]
    assert chunks == [b"0123", b"4567", b"89"]

    with pytest.raises(BlobNotFound):
        async for _ in store.open_read_stream("bkt", "nope"):
            pass


@pytest.mark.anyio
async def test_delete_by_prefix_is_scoped_to_bucket_and_prefix():
    store = InMemoryBlobStore()
    store.put("bkt", "users/u1/motorcycles/m1/a.jpg", b"1")
    store.put("bkt", "users/u1/motorcycles/m1/thumb_a.jpg", b"2")
    store.put("bkt", "users/u1/motorcycles/m10/a.jpg", b"3")
    store.put("other", "users/u1/motorcycles/m1/a.jpg", b"4")

    removed = await store.delete_by_prefix("bkt", "users/u1/motorcycles/m1/")

    assert removed == 2
    assert store.keys("bkt") == ["users/u1/motorcycles/m10/a.jpg"]
    assert store.keys("other") == ["users/u1/motorcycles/m1/a.jpg"]


@pytest.mark.anyio
async def test_access_descriptor_requires_existing_blob():
    store = InMemoryBlobStore()
    store.put("bkt", "k", b"1")
    url = await store.get_access_descriptor("bkt", "k", timedelta(days=7))
    assert url == "memory://bkt/k?expires_in=604800"
    with pytest.raises(BlobNotFound):
        await store.get_access_descriptor("bkt", "missing", timedelta(days=7))
