from pathlib import Path
import os
import shutil
import tempfile
import pytest

# Point the app at a throwaway SQLite file before any test imports it.
_DB_DIR = Path(tempfile.mkdtemp(prefix="studyplanner-tests-"))
os.environ["STUDYPLANNER_DATABASE_URL"] = f"sqlite:///{_DB_DIR / 'test.db'}"


@pytest.fixture(scope="session", autouse=True)
def reset_db():
    """Ensure a fresh SQLite database for tests."""
    yield
    shutil.rmtree(_DB_DIR, ignore_errors=True)
