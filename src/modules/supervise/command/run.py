import asyncio
from asyncio.subprocess import Process
from typing import Callable, Coroutine, Optional, Sequence, Any

from ...logging import BaseLogger
from ...shutdown import RegistrationError, ShutdownConfig, ShutdownCoordinator, ShutdownCoordinatorFactory
from ..errors import CleanupCommandError, ProgramNotFoundError


class RunCommand:
    """Command class for supervising a program and cleaning up after it."""
    
    def __init__(
        self,
        logger: BaseLogger,
        config: Optional[ShutdownConfig] = None,
        grace: float = 5.0,
        coordinator: Optional[ShutdownCoordinator] = None
    ):
        """
        Initialize the run command.
        
        Args:
            logger: Logger instance
            config: Shutdown configuration for the process coordinator
            grace: Seconds to wait after SIGTERM before killing the program
            coordinator: Coordinator to use instead of the process-wide one
        """
        self.logger = logger
        self.config = config
        self.grace = grace
        self.coordinator = coordinator

    def _get_coordinator(self) -> ShutdownCoordinator:
        if self.coordinator is None:
            self.coordinator = ShutdownCoordinatorFactory.get_instance().create_coordinator(
                self.logger, self.config
            )
        return self.coordinator

    def _cleanup_action(self, command: str) -> Callable[[], Coroutine[Any, Any, None]]:
        """Build an action that runs a shell command and fails on a non-zero status."""
        async def run_cleanup() -> None:
            process = await asyncio.create_subprocess_shell(command)
            returncode = await process.wait()
            if returncode != 0:
                raise CleanupCommandError(command, returncode)
        return run_cleanup

    def _terminate_action(self, process: Process) -> Callable[[], Coroutine[Any, Any, None]]:
        """Build an action that stops the program, escalating to SIGKILL after the grace period."""
        async def terminate_program() -> None:
            if process.returncode is not None:
                return
            self.logger.log_info(f"Stopping process {process.pid}")
            try:
                process.terminate()
            except ProcessLookupError:
                return
            try:
                await asyncio.wait_for(process.wait(), timeout=self.grace)
            except asyncio.TimeoutError:
                self.logger.log_warning(
                    f"Process {process.pid} did not exit after {self.grace} seconds, killing it"
                )
                process.kill()
                await process.wait()
        return terminate_program

    def register_cleanups(self, coordinator: ShutdownCoordinator, cleanup: Sequence[str]) -> None:
        """Register cleanup commands in the order given; they run in reverse."""
        for command in cleanup:
            coordinator.register(self._cleanup_action(command), name=f"cleanup: {command}")

    async def supervise(self, coordinator: ShutdownCoordinator, program: Sequence[str]) -> int:
        """Start the program, register its termination and wait for it to exit."""
        try:
            process = await asyncio.create_subprocess_exec(*program)
        except FileNotFoundError:
            raise ProgramNotFoundError(f"Program not found: {program[0]}")

        # Registered last so the program is stopped before any cleanup command runs
        coordinator.register(self._terminate_action(process), name=f"terminate: {program[0]}")
        self.logger.log_info(f"Started {program[0]} (pid {process.pid})")

        returncode = await process.wait()
        self.logger.log_info(f"{program[0]} exited with status {returncode}")
        return returncode

    def run(self, program: Sequence[str], cleanup: Sequence[str]) -> Optional[int]:
        """
        Run the program under the shutdown coordinator.
        
        Args:
            program: Program and its arguments
            cleanup: Shell commands to run at shutdown
            
        Returns:
            The program's exit status, or None if it was stopped by a signal
        """
        if not program:
            raise ValueError("No program given to run")

        coordinator = self._get_coordinator()
        self.register_cleanups(coordinator, cleanup)
        return coordinator.run(self.supervise(coordinator, program))

    def execute(self, program: Sequence[str], cleanup: Sequence[str]) -> int:
        """Run the program and map errors to an exit status."""
        try:
            returncode = self.run(program, cleanup)
        except (ValueError, RegistrationError) as err:
            self.logger.log_error(f"Run error: {str(err)}")
            return 2
        except ProgramNotFoundError as err:
            self.logger.log_error(str(err))
            return 127
        except OSError as err:
            self.logger.log_error(f"Failed to start program: {str(err)}")
            return 126
        if returncode is None:
            return 0
        # Killed by a signal: 128 + signal number
        return 128 - returncode if returncode < 0 else returncode
