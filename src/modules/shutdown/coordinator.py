"""Shutdown coordinator that runs registered cleanup actions when the process terminates."""

import asyncio
from asyncio import AbstractEventLoop, Task
import atexit
import inspect
import signal
import sys
import threading
import types
from typing import Any, Callable, Coroutine, Dict, Generic, List, Optional, TypeVar, Union, cast

import click

from ..logging import BaseLogger
from .config import ShutdownConfig
from .errors import ActionFailure, ActionTimeoutError, RegistrationError
from .state import CoordinatorState, DrainReport, ShutdownAction

# Define a bound type variable
T = TypeVar('T')

# Type for signal handlers
SignalHandlerType = Union[Callable[[int, Optional[types.FrameType]], Any], int, None]


class ShutdownCoordinator(Generic[T]):
    """
    Runs registered cleanup actions exactly once, most recently registered
    first, when the process is asked to terminate.

    Triggers are the configured signals and the interpreter exit event. The
    first trigger wins; every later one is ignored.
    """

    def __init__(
        self,
        logger: BaseLogger,
        config: Optional[ShutdownConfig] = None,
        exit_func: Callable[[int], Any] = sys.exit
    ):
        """
        Initialize the shutdown coordinator.

        Args:
            logger: Logger instance for shutdown events and action failures
            config: Shutdown configuration, defaults are used when omitted
            exit_func: Called with the exit status after a signal-triggered drain
        """
        self._actions: List[ShutdownAction] = []
        self._state = CoordinatorState.IDLE
        self._triggered = False
        self._trigger: Optional[str] = None
        self.logger = logger
        self.config = config or ShutdownConfig()
        self._exit_func = exit_func
        self._installed = False
        self._original_handlers: Dict[signal.Signals, SignalHandlerType] = {}
        self._main_task: Optional[Task[T]] = None
        self._active_loop: Optional[AbstractEventLoop] = None
        self._drain_task: Optional[Task] = None
        self._done_event = asyncio.Event()
        self._last_report: Optional[DrainReport] = None

    @property
    def state(self) -> CoordinatorState:
        return self._state

    @property
    def is_shutting_down(self) -> bool:
        """Check if a termination trigger has been received."""
        return self._triggered

    @property
    def pending(self) -> int:
        """Number of actions waiting to run."""
        return len(self._actions)

    @property
    def last_report(self) -> Optional[DrainReport]:
        return self._last_report

    @property
    def _drain_pending(self) -> bool:
        # A trigger was claimed but nothing has drained yet
        return self._triggered and self._state == CoordinatorState.IDLE

    def register(self, action: Callable, name: Optional[str] = None) -> Callable:
        """Register a cleanup action.

        Actions run in reverse registration order. An action may return an
        awaitable, which is awaited before the next action starts. Returns
        ``action`` unchanged so this can be used as a decorator.

        Args:
            action: Zero-argument callable to execute during shutdown
            name: Name used in logs, defaults to the callable's qualified name

        Raises:
            RegistrationError: If the action is not callable or shutdown has already begun
        """
        if not callable(action):
            raise RegistrationError(f"Shutdown action must be callable, got {type(action).__name__}")

        shutdown_action = ShutdownAction.from_callable(action, name)
        if self._triggered:
            raise RegistrationError(
                f"Cannot register shutdown action {shutdown_action.name}: shutdown already in progress"
            )

        self._actions.append(shutdown_action)
        self.logger.log_debug(f"Registered shutdown action: {shutdown_action.name}")
        return action

    def install(self) -> None:
        """
        Subscribe to the configured signals and the interpreter exit event.
        Signals can only be subscribed from the main thread. Calling this
        more than once has no effect.
        """
        if self._installed:
            return

        if threading.current_thread() is threading.main_thread():
            for name in self.config.signals:
                sig = getattr(signal, name, None)
                if sig is None:
                    self.logger.log_debug(f"Signal {name} is not available on this platform, skipping")
                    continue
                original = signal.getsignal(sig)
                try:
                    signal.signal(sig, self._handle_signal)
                except (OSError, ValueError, RuntimeError) as e:
                    self.logger.log_warning(f"Cannot handle signal {name}, skipping: {str(e)}")
                    continue
                # Store original signal handlers to restore later
                self._original_handlers[sig] = original
        else:
            self.logger.log_warning(
                "Shutdown coordinator installed outside the main thread, signal handlers were not registered"
            )

        if self.config.handle_exit:
            atexit.register(self._handle_exit)
        self._installed = True

    def uninstall(self) -> None:
        """Restore original signal handlers and drop the exit hook."""
        if not self._installed:
            return

        for sig, handler in self._original_handlers.items():
            # getsignal() returns None for handlers that were not installed from Python
            signal.signal(sig, handler if handler is not None else signal.SIG_DFL)
        self._original_handlers.clear()

        if self.config.handle_exit:
            atexit.unregister(self._handle_exit)
        self._installed = False

    def _claim_trigger(self, trigger: str) -> bool:
        """Record the first trigger. Returns False for any later one."""
        if self._triggered:
            self._safe_log("log_debug", f"Ignoring {trigger}: shutdown already triggered by {self._trigger}")
            return False
        self._triggered = True
        self._trigger = trigger
        self._safe_log("log_trigger", trigger)
        return True

    def _handle_signal(self, sig_num: int, frame: Optional[types.FrameType]) -> None:
        """
        Handle termination signals. This is a synchronous method
        that will be called directly by the signal handler.

        Args:
            sig_num: The signal number that was received
            frame: The current stack frame
        """
        if not self._claim_trigger(signal.Signals(sig_num).name):
            return

        # Main task started by run(): cancel it and let run() drain on its loop
        if self._main_task and not self._main_task.done() and self._active_loop:
            self._active_loop.call_soon_threadsafe(self._main_task.cancel)
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            loop.call_soon_threadsafe(self._start_drain_task)
            return

        report = self._drain_blocking()
        self._terminate(report)

    def _handle_exit(self) -> None:
        if not self._claim_trigger("exit"):
            return
        self._drain_blocking()

    def _start_drain_task(self) -> None:
        self._drain_task = asyncio.get_running_loop().create_task(self._drain_and_terminate())

    async def _drain_and_terminate(self) -> None:
        report = await self._drain()
        self._terminate(report)

    def _drain_blocking(self) -> DrainReport:
        """Run a drain to completion on a private event loop."""
        loop = asyncio.new_event_loop()
        try:
            return loop.run_until_complete(self._drain())
        finally:
            try:
                loop.run_until_complete(loop.shutdown_asyncgens())
            finally:
                loop.close()

    def exit_status(self, report: DrainReport) -> int:
        """Exit status to use once the given drain has finished."""
        if report.failures and self.config.failure_exit_code is not None:
            return self.config.failure_exit_code
        return self.config.exit_code

    def _terminate(self, report: DrainReport) -> None:
        status = self.exit_status(report)
        self._safe_log("log_debug", f"Exiting with status {status}")
        self._exit_func(status)

    async def shutdown(self, trigger: str = "manual") -> Optional[DrainReport]:
        """
        Trigger shutdown programmatically and wait for the drain to finish.

        Returns:
            The drain report, or None if shutdown had already been triggered
        """
        if not self._claim_trigger(trigger):
            return None
        return await self._drain()

    async def wait_for_shutdown(self) -> None:
        """Wait until a drain has completed."""
        await self._done_event.wait()

    async def _finish(self, trigger: str) -> Optional[DrainReport]:
        """Drain for an already claimed trigger, or claim ``trigger`` now."""
        if self._drain_pending:
            return await self._drain()
        return await self.shutdown(trigger)

    def _safe_log(self, method: str, *args: Any) -> None:
        """Write to the logger, falling back to stderr if the logger fails."""
        try:
            getattr(self.logger, method)(*args)
        except Exception as e:
            click.echo(f"{args[-1]} (logger failed: {e})", err=True)

    async def _invoke(self, action: ShutdownAction) -> None:
        result = action.handler()
        if not inspect.isawaitable(result):
            return

        timeout = self.config.action_timeout
        if timeout is None:
            await result
            return
        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            await asyncio.wait_for(result, timeout=timeout)
        except asyncio.TimeoutError:
            # TimeoutError raised by the action itself before the deadline
            if loop.time() - started < timeout:
                raise
            raise ActionTimeoutError(action.name, timeout)

    def _record_failure(self, report: DrainReport, failure: ActionFailure) -> None:
        report.failures.append(failure)
        self._safe_log("log_error", str(failure))

    async def _drain(self) -> DrainReport:
        """
        Pop actions from the top of the stack and run them one at a time.
        Failures are reported and never stop the drain.
        """
        self._state = CoordinatorState.DRAINING
        report = DrainReport(trigger=self._trigger or "manual")

        # The registry is detached once; nothing can be added after this point
        actions, self._actions = self._actions, []
        total = len(actions)
        position = 0
        while actions:
            action = actions.pop()
            position += 1
            self._safe_log("log_action", position, total, action.name)
            try:
                await self._invoke(action)
            except ActionFailure as failure:
                self._record_failure(report, failure)
            except Exception as e:
                self._record_failure(report, ActionFailure(action.name, e))
            except (asyncio.CancelledError, KeyboardInterrupt, SystemExit) as e:
                # A drain cannot be aborted from inside an action
                self._record_failure(report, ActionFailure(action.name, e))
            report.executed.append(action.name)

        self._state = CoordinatorState.DONE
        self._last_report = report
        self._done_event.set()
        if report.failures:
            self._safe_log(
                "log_warning",
                f"Graceful shutdown completed with {len(report.failures)} failed action(s)"
            )
        else:
            self._safe_log("log_info", "Graceful shutdown completed")
        return report

    def run(self, coroutine: Coroutine[Any, Any, T]) -> T:
        """
        Run an async coroutine with signal handling and graceful shutdown.

        This method creates a new event loop, installs the coordinator and
        runs the provided coroutine. When a signal is received the coroutine
        is cancelled, registered actions are drained on the same loop and the
        process exits. When the coroutine finishes or raises, actions are
        drained before returning or re-raising.

        Args:
            coroutine: The coroutine to execute

        Returns:
            The result of the coroutine

        Raises:
            Any exception raised by the coroutine
        """
        result = None
        installed_here = not self._installed

        # Create and set up a new event loop
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._active_loop = loop
        self.install()

        try:
            # Create task and store reference for potential cancellation
            main_task = loop.create_task(coroutine)
            self._main_task = cast(Task[T], main_task)  # Safe cast since we know the type

            try:
                result = loop.run_until_complete(main_task)
            except asyncio.CancelledError:
                if not self._drain_pending:
                    raise
                self._safe_log("log_info", "Main task was cancelled, performing graceful shutdown")
            except Exception as e:
                self._safe_log("log_error", f"Error during execution: {str(e)}")
                # Still drain on error, then re-raise the original exception
                signalled = self._drain_pending
                report = loop.run_until_complete(self._finish("error"))
                if signalled and report is not None:
                    self._terminate(report)
                raise

            signalled = self._drain_pending
            report = loop.run_until_complete(self._finish("completed"))
            if signalled and report is not None:
                self._terminate(report)
            return cast(T, result)

        finally:
            # Reset references
            self._main_task = None
            self._active_loop = None

            if installed_here:
                self.uninstall()

            # Cancel and collect anything the coroutine left running
            try:
                pending = asyncio.all_tasks(loop)
                for task in pending:
                    task.cancel()
                if pending:
                    loop.run_until_complete(
                        asyncio.gather(*pending, return_exceptions=True)
                    )
            except Exception as e:
                self._safe_log("log_warning", f"Error cleaning up pending tasks: {str(e)}")

            # Close the loop properly
            try:
                loop.run_until_complete(loop.shutdown_asyncgens())
                loop.close()
            except Exception as e:
                self._safe_log("log_warning", f"Error closing event loop: {str(e)}")
            asyncio.set_event_loop(None)
