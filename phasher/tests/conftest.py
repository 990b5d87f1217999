import logging

import pytest

from phasher.config import UniquePolicy
from phasher.database.manager import FingerprintStore


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "hashes.db"


@pytest.fixture
def store(db_path):
    """Fresh store with the default (full tuple) uniqueness policy."""
    s = FingerprintStore(db_path, UniquePolicy.TUPLE, timeout=5.0)
    yield s
    s.close()


@pytest.fixture
def frame_store(tmp_path):
    """Fresh store where (key, frame) alone is unique."""
    s = FingerprintStore(tmp_path / "frames.db", UniquePolicy.FRAME, timeout=5.0)
    yield s
    s.close()


@pytest.fixture(autouse=True)
def restore_root_logging():
    """CLI tests reconfigure the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for h in root.handlers[:]:
        if h not in handlers:
            root.removeHandler(h)
    for h in handlers:
        if h not in root.handlers:
            root.addHandler(h)
    root.setLevel(level)
