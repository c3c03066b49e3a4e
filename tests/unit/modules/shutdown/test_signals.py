"""Tests for signal and exit-event triggers of the shutdown coordinator."""

import asyncio
import os
import signal
import sys
import time
import pytest
from unittest.mock import Mock, patch

from src.modules.shutdown.config import ShutdownConfig
from src.modules.shutdown.coordinator import ShutdownCoordinator
from src.modules.shutdown.state import CoordinatorState

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals required")


@pytest.fixture
def exit_func():
    return Mock()


@pytest.fixture
def coordinator(mock_logger, exit_func, mock_atexit, restore_signals):
    coordinator = ShutdownCoordinator(mock_logger, exit_func=exit_func)
    yield coordinator
    coordinator.uninstall()


class TestInstall:
    """Test cases for trigger subscription."""

    def test_install_replaces_signal_handlers(self, coordinator):
        coordinator.install()

        for sig in (signal.SIGINT, signal.SIGTERM, signal.SIGHUP):
            assert signal.getsignal(sig) == coordinator._handle_signal

    def test_install_registers_exit_hook(self, coordinator, mock_atexit):
        coordinator.install()
        mock_atexit.register.assert_called_once_with(coordinator._handle_exit)

    def test_install_is_idempotent(self, coordinator, mock_atexit):
        coordinator.install()
        coordinator.install()
        assert mock_atexit.register.call_count == 1

    def test_uninstall_restores_handlers(self, coordinator, mock_atexit):
        original = signal.getsignal(signal.SIGTERM)

        coordinator.install()
        coordinator.uninstall()

        assert signal.getsignal(signal.SIGTERM) == original
        mock_atexit.unregister.assert_called_once_with(coordinator._handle_exit)

    def test_exit_hook_disabled(self, mock_logger, mock_atexit, restore_signals):
        coordinator = ShutdownCoordinator(mock_logger, ShutdownConfig(handle_exit=False))
        coordinator.install()
        coordinator.uninstall()
        mock_atexit.register.assert_not_called()

    def test_only_configured_signals(self, mock_logger, mock_atexit, restore_signals):
        original = signal.getsignal(signal.SIGHUP)
        coordinator = ShutdownCoordinator(mock_logger, ShutdownConfig(signals=["SIGTERM"]))

        coordinator.install()
        try:
            assert signal.getsignal(signal.SIGTERM) == coordinator._handle_signal
            assert signal.getsignal(signal.SIGHUP) == original
        finally:
            coordinator.uninstall()

    @pytest.mark.skipif(hasattr(signal, "SIGBREAK"), reason="SIGBREAK exists on this platform")
    def test_unavailable_signal_is_skipped(self, mock_logger, mock_atexit, restore_signals):
        coordinator = ShutdownCoordinator(mock_logger, ShutdownConfig(signals=["SIGBREAK"]))

        coordinator.install()
        coordinator.uninstall()

        mock_logger.log_debug.assert_any_call("Signal SIGBREAK is not available on this platform, skipping")

    def test_refused_signal_is_skipped(self, mock_logger, mock_atexit, restore_signals):
        original = signal.getsignal(signal.SIGTERM)
        # Bypass validation to reach install() with a signal the OS refuses
        config = ShutdownConfig.model_construct(signals=["SIGTERM", "SIGKILL"], handle_exit=True)
        coordinator = ShutdownCoordinator(mock_logger, config)

        coordinator.install()
        assert signal.getsignal(signal.SIGTERM) == coordinator._handle_signal
        assert signal.SIGKILL not in coordinator._original_handlers
        warning = mock_logger.log_warning.call_args[0][0]
        assert warning.startswith("Cannot handle signal SIGKILL, skipping")

        coordinator.uninstall()
        assert signal.getsignal(signal.SIGTERM) == original

    def test_install_outside_main_thread(self, mock_logger, mock_atexit):
        coordinator = ShutdownCoordinator(mock_logger)

        with patch("src.modules.shutdown.coordinator.threading") as mock_threading:
            mock_threading.current_thread.return_value = object()
            coordinator.install()

        mock_logger.log_warning.assert_called_once()
        mock_atexit.register.assert_called_once_with(coordinator._handle_exit)
        coordinator.uninstall()


class TestSignalTrigger:
    """Test cases for signal-triggered drains."""

    def test_signal_drains_and_exits(self, coordinator, exit_func):
        execution_order = []
        coordinator.register(lambda: execution_order.append("a"), name="a")
        coordinator.register(lambda: execution_order.append("b"), name="b")

        coordinator._handle_signal(signal.SIGTERM, None)

        assert execution_order == ["b", "a"]
        assert coordinator.state == CoordinatorState.DONE
        assert coordinator.last_report.trigger == "SIGTERM"
        exit_func.assert_called_once_with(0)

    def test_async_actions_in_signal_drain(self, coordinator, exit_func):
        execution_order = []

        async def close_pool():
            await asyncio.sleep(0.01)
            execution_order.append("pool")

        coordinator.register(close_pool)
        coordinator.register(lambda: execution_order.append("server"), name="server")

        coordinator._handle_signal(signal.SIGINT, None)

        assert execution_order == ["server", "pool"]
        exit_func.assert_called_once_with(0)

    def test_second_signal_is_ignored(self, coordinator, exit_func, mock_logger):
        execution_count = 0

        def increment_count():
            nonlocal execution_count
            execution_count += 1

        coordinator.register(increment_count)

        coordinator._handle_signal(signal.SIGINT, None)
        coordinator._handle_signal(signal.SIGINT, None)
        coordinator._handle_signal(signal.SIGTERM, None)

        assert execution_count == 1
        exit_func.assert_called_once_with(0)
        mock_logger.log_trigger.assert_called_once_with("SIGINT")

    def test_signal_during_drain_is_ignored(self, coordinator, exit_func):
        execution_order = []

        def interrupted_action():
            execution_order.append("interrupted")
            coordinator._handle_signal(signal.SIGINT, None)

        coordinator.register(lambda: execution_order.append("a"), name="a")
        coordinator.register(interrupted_action)

        coordinator._handle_signal(signal.SIGTERM, None)

        assert execution_order == ["interrupted", "a"]
        exit_func.assert_called_once_with(0)

    def test_failure_exit_code(self, mock_logger, exit_func, mock_atexit, restore_signals):
        coordinator = ShutdownCoordinator(
            mock_logger, ShutdownConfig(failure_exit_code=3), exit_func=exit_func
        )
        execution_order = []
        coordinator.register(lambda: execution_order.append("a"), name="a")
        coordinator.register(Mock(side_effect=OSError("disk full")), name="flush")

        coordinator._handle_signal(signal.SIGTERM, None)

        assert execution_order == ["a"]
        exit_func.assert_called_once_with(3)

    @pytest.mark.asyncio
    async def test_signal_with_running_loop(self, coordinator, exit_func):
        execution_order = []

        async def close_pool():
            await asyncio.sleep(0.01)
            execution_order.append("pool")

        coordinator.register(close_pool)

        coordinator._handle_signal(signal.SIGTERM, None)
        await asyncio.wait_for(coordinator.wait_for_shutdown(), timeout=1)
        # Let the drain task finish its exit step
        await asyncio.sleep(0)

        assert execution_order == ["pool"]
        exit_func.assert_called_once_with(0)

    def test_real_signal_exits_process(self, mock_logger, mock_atexit, restore_signals):
        coordinator = ShutdownCoordinator(mock_logger)
        execution_order = []
        coordinator.register(lambda: execution_order.append("a"), name="a")
        coordinator.install()

        try:
            with pytest.raises(SystemExit) as exc_info:
                os.kill(os.getpid(), signal.SIGTERM)
                for _ in range(100):
                    time.sleep(0.01)
        finally:
            coordinator.uninstall()

        assert exc_info.value.code == 0
        assert execution_order == ["a"]


class TestExitTrigger:
    """Test cases for drains started by the interpreter exit event."""

    def test_exit_drains_without_exiting(self, coordinator, exit_func):
        execution_order = []
        coordinator.register(lambda: execution_order.append("a"), name="a")
        coordinator.register(lambda: execution_order.append("b"), name="b")

        coordinator._handle_exit()

        assert execution_order == ["b", "a"]
        assert coordinator.last_report.trigger == "exit"
        exit_func.assert_not_called()

    def test_exit_after_signal_is_ignored(self, coordinator, exit_func):
        execution_count = 0

        def increment_count():
            nonlocal execution_count
            execution_count += 1

        coordinator.register(increment_count)

        coordinator._handle_signal(signal.SIGHUP, None)
        coordinator._handle_exit()

        assert execution_count == 1
        assert coordinator.last_report.trigger == "SIGHUP"

    def test_signal_after_exit_is_ignored(self, coordinator, exit_func):
        coordinator.register(lambda: None)

        coordinator._handle_exit()
        coordinator._handle_signal(signal.SIGTERM, None)

        exit_func.assert_not_called()
