import pytest
from loguru import logger

import iconic.config
from iconic.config import Config
from iconic.db import close_db, init_db


@pytest.fixture(autouse=True)
def setup_config(tmp_path_factory):
    """Set up test CONFIG before each test in its own temporary directory."""
    config = Config(home=tmp_path_factory.mktemp("iconic-data"))

    # Set module-level CONFIG
    iconic.config.CONFIG = config
    config.ensure_dirs()

    yield config

    # Cleanup: Reset CONFIG after test
    iconic.config.CONFIG = None


@pytest.fixture(autouse=True)
async def setup_db():
    """Initialize in-memory SQLite for each test and tear down after."""
    await init_db(db_path=":memory:")
    yield
    await close_db()


@pytest.fixture(autouse=True)
def disable_file_logging(monkeypatch):
    """Prevent logger.add() from creating file handlers during tests."""
    original_add = logger.add

    def mock_add(sink, **kwargs):
        # Block file path sinks to prevent log files during tests
        if hasattr(sink, "__fspath__") or isinstance(sink, (str, bytes)):
            return None  # Return dummy handler ID
        return original_add(sink, **kwargs)

    monkeypatch.setattr(logger, "add", mock_add)
    yield
