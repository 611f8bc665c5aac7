import sys
from pathlib import Path
import os

import pytest

# Ensure repo root on sys.path for imports from anywhere in tests tree.
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("BLOB_BACKEND", "memory")
os.environ.setdefault("DOCUMENT_BACKEND", "memory")
os.environ.setdefault("GCP_PROJECT", "test-project")

from asset_engines.logging.event_log import set_event_logger  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def lifecycle_events():
    """Capture lifecycle events emitted through the default logger hook."""
    events = []
    set_event_logger(events.append)
    yield events
    set_event_logger(None)
