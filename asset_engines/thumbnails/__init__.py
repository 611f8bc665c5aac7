"""Thumbnail derivative pipeline."""

from asset_engines.thumbnails.errors import (
    AccessDescriptorFailure,
    DerivativeError,
    PermanentLinkFailure,
    PermanentTransformFailure,
    PermanentWriteFailure,
    TransientLinkFailure,
)
from asset_engines.thumbnails.linker import MetadataLinker
from asset_engines.thumbnails.models import DerivativeResult, PipelineOutcome, PipelineState, RollbackPolicy
from asset_engines.thumbnails.rollback import RollbackCompensator
from asset_engines.thumbnails.service import DerivativePipeline, ThumbnailService
from asset_engines.thumbnails.transformer import StreamTransformer
from asset_engines.thumbnails.writer import DerivativeWriter

__all__ = [
    "AccessDescriptorFailure",
    "DerivativeError",
    "PermanentLinkFailure",
    "PermanentTransformFailure",
    "PermanentWriteFailure",
    "TransientLinkFailure",
    "MetadataLinker",
    "DerivativeResult",
    "PipelineOutcome",
    "PipelineState",
    "RollbackPolicy",
    "RollbackCompensator",
    "DerivativePipeline",
    "ThumbnailService",
    "StreamTransformer",
    "DerivativeWriter",
]
