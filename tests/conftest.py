import os
import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DEFECT_TRACKER_DATABASE_URL", "sqlite+pysqlite:///:memory:")

from defect_tracker.store import STORE


@pytest.fixture(autouse=True)
def reset_store():
    STORE.reset()
    yield
