import os
import sys

import pytest

# Ensure project root is importable (so `import rsr`, `import main` work without installing)
_project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from rsr import db  # noqa: E402
from rsr.settings import Settings  # noqa: E402


@pytest.fixture(autouse=True)
def events_db(tmp_path, monkeypatch):
    """Give every test its own event journal."""
    path = str(tmp_path / "events.db")
    monkeypatch.setattr(db, "settings", Settings(db_path=path))
    return path


@pytest.fixture
def paths(tmp_path):
    """(external resolv.conf, managed copy) inside a temp dir."""
    run = tmp_path / "run"
    run.mkdir()
    return str(tmp_path / "resolv.conf"), str(run / "resolv.conf")


_mtime = [1_700_000_000]


@pytest.fixture
def write_file():
    """Write text to a file and give it a fresh, distinct mtime."""

    def _write(path: str, text: str) -> None:
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
        _mtime[0] += 10
        os.utime(path, (_mtime[0], _mtime[0]))

    return _write
