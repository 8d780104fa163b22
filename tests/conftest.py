import logging
import sys
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture(autouse=True)
def isolated_logs(tmp_path, monkeypatch):
    """Point log files at the test's tmp dir and drop handlers a CLI run installed."""
    logs_dir = tmp_path / "logs"
    monkeypatch.setattr("goal_engine.logger.LOGS_DIR", logs_dir)
    root = logging.getLogger("goal_engine")
    saved = list(root.handlers)
    yield logs_dir
    for handler in root.handlers:
        if handler not in saved:
            handler.close()
    root.handlers[:] = saved
