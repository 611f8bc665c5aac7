"""Write one derivative object and fetch access descriptors for the pair."""
from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Callable, Optional

from asset_engines.storage.blob_store import BlobStore
from asset_engines.thumbnails.errors import AccessDescriptorFailure, PermanentWriteFailure
from asset_engines.thumbnails.models import DerivativeResult, PipelineState
from asset_engines.thumbnails.transformer import StreamTransformer

logger = logging.getLogger(__name__)

StateHook = Callable[[PipelineState], None]


class DerivativeWriter:
    def __init__(
        self,
        blobs: BlobStore,
        transformer: StreamTransformer,
        descriptor_ttl: timedelta,
        read_chunk_bytes: int,
    ) -> None:
        self._blobs = blobs
        self._transformer = transformer
        self._descriptor_ttl = descriptor_ttl
        self._read_chunk_bytes = read_chunk_bytes

    async def write(
        self,
        bucket: str,
        primary_key: str,
        derivative_key: str,
        content_type: Optional[str],
        on_state: Optional[StateHook] = None,
    ) -> DerivativeResult:
        """Stream-resize ``primary_key`` into ``derivative_key`` and sign both.

        Raises PermanentTransformFailure or PermanentWriteFailure before anything
        is committed, and AccessDescriptorFailure after the derivative exists.
        """
        try:
            sink = await self._blobs.open_write_stream(bucket, derivative_key, content_type)
        except Exception as exc:
            raise PermanentWriteFailure(f"cannot open gs://{bucket}/{derivative_key}: {exc}") from exc

        source = self._blobs.open_read_stream(bucket, primary_key, self._read_chunk_bytes)
        resized = await self._transformer.transform(source, sink)

        if on_state:
            on_state(PipelineState.writing)
        try:
            await sink.close()
        except Exception as exc:
            raise PermanentWriteFailure(f"finalizing gs://{bucket}/{derivative_key} failed: {exc}") from exc
        logger.info(f"thumbnail created successfully: gs://{bucket}/{derivative_key}")

        try:
            primary_url, derivative_url = await asyncio.gather(
                self._blobs.get_access_descriptor(bucket, primary_key, self._descriptor_ttl),
                self._blobs.get_access_descriptor(bucket, derivative_key, self._descriptor_ttl),
            )
        except Exception as exc:
            raise AccessDescriptorFailure(f"signing urls for {primary_key} failed: {exc}") from exc
        logger.info(f"got signed urls for {primary_key}")

        return DerivativeResult(
            bucket=bucket,
            primary_key=primary_key,
            derivative_key=derivative_key,
            primary_url=primary_url,
            derivative_url=derivative_url,
            width=resized.width,
            height=resized.height,
        )
