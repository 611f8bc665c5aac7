"""Streaming fit-inside resize from a blob read stream into a blob write stream."""
from __future__ import annotations

import asyncio
import io
import logging
import tempfile
from typing import AsyncIterator, BinaryIO, Optional, Tuple

from PIL import Image

from asset_engines.storage.blob_store import DEFAULT_CHUNK_BYTES, BlobWriter
from asset_engines.storage.errors import StorageError
from asset_engines.thumbnails.errors import PermanentTransformFailure, PermanentWriteFailure
from asset_engines.thumbnails.models import ResizeResult, is_derivative_key

logger = logging.getLogger(__name__)

# formats Pillow decodes but should be re-encoded as their base format
_SAVE_FORMAT_ALIASES = {"MPO": "JPEG"}
_JPEG_MODES = {"RGB", "L", "CMYK"}
_DECODE_ERRORS = (OSError, SyntaxError, ValueError, Image.DecompressionBombError)

# compressed source bytes kept in memory before the spool rolls over to disk
SPOOL_MEMORY_BYTES = 8 * 1024 * 1024


class StreamTransformer:
    def __init__(
        self,
        max_width: int,
        max_height: int,
        derivative_prefix: str,
        write_chunk_bytes: int = DEFAULT_CHUNK_BYTES,
        spool_memory_bytes: int = SPOOL_MEMORY_BYTES,
    ) -> None:
        if max_width <= 0 or max_height <= 0:
            raise ValueError("thumbnail bounds must be positive")
        self.max_width = max_width
        self.max_height = max_height
        self.derivative_prefix = derivative_prefix
        self.write_chunk_bytes = write_chunk_bytes
        self.spool_memory_bytes = spool_memory_bytes

    def applicability(self, object_name: str, content_type: Optional[str]) -> Optional[str]:
        """Return why the object must not be transformed, or None if it should be."""
        if not content_type or not content_type.startswith("image/"):
            return "not an image"
        if is_derivative_key(object_name, self.derivative_prefix):
            return "already a thumbnail"
        return None

    async def transform(self, source: AsyncIterator[bytes], sink: BlobWriter) -> ResizeResult:
        """Spool ``source``, resize, and stream the encoded result into ``sink``.

        The compressed bytes are spooled (in memory up to ``spool_memory_bytes``,
        then on disk) and decoded at reduced resolution where the format allows,
        so the full-size bitmap is never held. The sink is aborted when reading or
        decoding fails and the source is closed when anything fails. The caller
        still owns ``sink.close()``.
        """
        try:
            with await self._spool(source) as spool:
                payload, fmt, size = await asyncio.to_thread(self._resize, spool)
        except BaseException:
            await sink.abort()
            raise
        try:
            for offset in range(0, len(payload), self.write_chunk_bytes):
                await sink.write(payload[offset : offset + self.write_chunk_bytes])
        except Exception as exc:
            await sink.abort()
            raise PermanentWriteFailure(f"writing thumbnail failed: {exc}") from exc
        logger.debug(f"resized to {size[0]}x{size[1]} {fmt} ({len(payload)} bytes)")
        return ResizeResult(width=size[0], height=size[1], format=fmt, bytes_written=len(payload))

    async def _spool(self, source: AsyncIterator[bytes]) -> BinaryIO:
        spool = tempfile.SpooledTemporaryFile(max_size=self.spool_memory_bytes, prefix="thumb_src_")
        try:
            async for chunk in source:
                spool.write(chunk)
        except StorageError as exc:
            spool.close()
            raise PermanentTransformFailure(f"source not readable: {exc}") from exc
        except BaseException:
            spool.close()
            raise
        finally:
            aclose = getattr(source, "aclose", None)
            if aclose is not None:
                await aclose()
        spool.seek(0)
        return spool

    def open_reduced(self, fp: BinaryIO) -> Image.Image:
        """Open ``fp`` lazily, asking the decoder for the smallest scale still covering the bounds.

        Only JPEG decoders honour the draft request; other formats open at full size.
        """
        try:
            image = Image.open(fp)
            image.draft(image.mode, (self.max_width, self.max_height))
        except _DECODE_ERRORS as exc:
            raise PermanentTransformFailure(f"invalid image data: {exc}") from exc
        return image

    def _resize(self, fp: BinaryIO) -> Tuple[bytes, str, Tuple[int, int]]:
        with self.open_reduced(fp) as image:
            fmt = _SAVE_FORMAT_ALIASES.get(image.format or "", image.format) or "PNG"
            try:
                image.thumbnail((self.max_width, self.max_height))
                resized = image
                if fmt == "JPEG" and resized.mode not in _JPEG_MODES:
                    resized = resized.convert("RGB")
                buffer = io.BytesIO()
                resized.save(buffer, format=fmt)
            except _DECODE_ERRORS as exc:
                raise PermanentTransformFailure(f"could not resize {fmt} image: {exc}") from exc
            return buffer.getvalue(), fmt, resized.size
