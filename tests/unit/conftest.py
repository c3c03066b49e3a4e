import signal
import sys
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

# Add project root to Python path
root_path = str(Path(__file__).parent.parent.parent)
if root_path not in sys.path:
    sys.path.append(root_path)


@pytest.fixture
def mock_logger():
    """Create a mock logger."""
    logger = Mock()
    logger.log_info = Mock()
    logger.log_error = Mock()
    logger.log_warning = Mock()
    logger.log_debug = Mock()
    logger.log_trigger = Mock()
    logger.log_action = Mock()
    return logger


@pytest.fixture
def mock_atexit():
    """Keep coordinators from registering real interpreter exit hooks."""
    with patch("src.modules.shutdown.coordinator.atexit") as mocked:
        yield mocked


@pytest.fixture
def restore_signals():
    """Put the process signal handlers back after a test."""
    names = ["SIGINT", "SIGTERM", "SIGHUP"]
    saved = {
        getattr(signal, name): signal.getsignal(getattr(signal, name))
        for name in names if hasattr(signal, name)
    }
    yield
    for sig, handler in saved.items():
        signal.signal(sig, handler if handler is not None else signal.SIG_DFL)
