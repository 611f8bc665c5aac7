import io

import pytest
from PIL import Image

from asset_engines.storage.blob_store import InMemoryBlobStore
from asset_engines.storage.errors import StorageError
from asset_engines.thumbnails.errors import PermanentTransformFailure, PermanentWriteFailure
from asset_engines.thumbnails.transformer import StreamTransformer


def _image_bytes(size, fmt="JPEG", mode="RGB"):
    buffer = io.BytesIO()
    Image.new(mode, size, "red").save(buffer, format=fmt)
    return buffer.getvalue()


class _Source:
    def __init__(self, data, chunk_size=1024, fail_after=None):
        self.chunks = [data[i : i + chunk_size] for i in range(0, len(data), chunk_size)]
        self.fail_after = fail_after
        self.served = 0
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.fail_after is not None and self.served >= self.fail_after:
            raise StorageError("connection reset")
        if self.served >= len(self.chunks):
            raise StopAsyncIteration
        chunk = self.chunks[self.served]
        self.served += 1
        return chunk

    async def aclose(self):
        self.closed = True


class _Sink:
    def __init__(self, fail_on_write=False):
        self.fail_on_write = fail_on_write
        self.data = b""
        self.aborted = False

    async def write(self, chunk):
        if self.fail_on_write:
            raise StorageError("quota exceeded")
        self.data += chunk

    async def close(self):
        pass

    async def abort(self):
        self.aborted = True


def _transformer(**kwargs):
    return StreamTransformer(250, 250, "thumb_", **kwargs)


def test_applicability():
    t = _transformer()
    assert t.applicability("users/u1/motorcycles/m1/bike.jpg", "image/jpeg") is None
    assert t.applicability("users/u1/motorcycles/m1/notes.txt", "text/plain") == "not an image"
    assert t.applicability("users/u1/motorcycles/m1/bike.jpg", None) == "not an image"
    assert t.applicability("users/u1/motorcycles/m1/thumb_bike.jpg", "image/jpeg") == "already a thumbnail"
    # only the basename carries the marker
    assert t.applicability("thumb_dir/bike.jpg", "image/jpeg") is None


def test_bounds_must_be_positive():
    with pytest.raises(ValueError):
        StreamTransformer(0, 250, "thumb_")


@pytest.mark.anyio
async def test_portrait_jpeg_fits_inside_bounds():
    store = InMemoryBlobStore()
    sink = await store.open_write_stream("bkt", "a/thumb_bike.jpg", "image/jpeg")
    source = _Source(_image_bytes((1000, 2000)), chunk_size=4096)

    result = await _transformer(write_chunk_bytes=512).transform(source, sink)
    await sink.close()

    assert (result.width, result.height) == (125, 250)
    assert result.format == "JPEG"
    assert source.closed
    written = store.get("bkt", "a/thumb_bike.jpg").data
    assert len(written) == result.bytes_written
    with Image.open(io.BytesIO(written)) as thumb:
        assert thumb.size == (125, 250)
        assert thumb.format == "JPEG"


@pytest.mark.anyio
async def test_small_png_is_not_upscaled_and_keeps_format():
    sink = _Sink()

    result = await _transformer().transform(_Source(_image_bytes((100, 40), fmt="PNG", mode="RGBA")), sink)

    assert (result.width, result.height) == (100, 40)
    assert result.format == "PNG"
    with Image.open(io.BytesIO(sink.data)) as thumb:
        assert thumb.mode == "RGBA"


@pytest.mark.anyio
async def test_invalid_image_data_aborts_sink_and_closes_source():
    sink = _Sink()
    source = _Source(b"definitely not an image" * 10, chunk_size=16)

    with pytest.raises(PermanentTransformFailure, match="invalid image data"):
        await _transformer().transform(source, sink)

    assert sink.aborted
    assert sink.data == b""
    assert source.closed


@pytest.mark.anyio
async def test_unreadable_source_is_a_transform_failure():
    sink = _Sink()
    source = _Source(_image_bytes((600, 600)), chunk_size=64, fail_after=2)

    with pytest.raises(PermanentTransformFailure, match="source not readable"):
        await _transformer().transform(source, sink)

    assert sink.aborted
    assert source.closed


@pytest.mark.anyio
async def test_sink_write_failure_is_a_write_failure():
    sink = _Sink(fail_on_write=True)
    source = _Source(_image_bytes((500, 300)))

    with pytest.raises(PermanentWriteFailure):
        await _transformer().transform(source, sink)

    assert sink.aborted
    assert source.closed


def test_large_jpeg_is_opened_at_reduced_scale():
    data = _image_bytes((4000, 2000))

    with _transformer().open_reduced(io.BytesIO(data)) as image:
        # smallest 1/2^n scale still covering 250x250, before any pixels are decoded
        assert image.size == (500, 250)
        assert image.format == "JPEG"


def test_non_jpeg_opens_at_full_size():
    with _transformer().open_reduced(io.BytesIO(_image_bytes((600, 300), fmt="PNG"))) as image:
        assert image.size == (600, 300)


@pytest.mark.anyio
async def test_source_larger_than_memory_spool_is_resized():
    sink = _Sink()
    source = _Source(_image_bytes((3000, 1500)), chunk_size=512)

    result = await _transformer(spool_memory_bytes=1024).transform(source, sink)

    assert (result.width, result.height) == (250, 125)
    assert source.closed
    with Image.open(io.BytesIO(sink.data)) as thumb:
        assert thumb.size == (250, 125)
