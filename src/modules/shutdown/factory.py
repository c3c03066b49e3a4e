"""Factory that owns the process-wide ShutdownCoordinator."""

from typing import Optional

from ..logging import BaseLogger
from .config import ShutdownConfig
from .coordinator import ShutdownCoordinator


class ShutdownCoordinatorFactory:
    """Creates the single ShutdownCoordinator of the process and hands it out by reference."""
    
    _instance = None
    
    def __init__(self):
        self._coordinator: Optional[ShutdownCoordinator] = None
    
    @classmethod
    def get_instance(cls) -> 'ShutdownCoordinatorFactory':
        """Get or create the singleton factory instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance
    
    def create_coordinator(
        self,
        logger: BaseLogger,
        config: Optional[ShutdownConfig] = None,
        install: bool = True
    ) -> ShutdownCoordinator:
        """
        Create the process coordinator, or return it if it already exists.
        
        Args:
            logger: Logger instance for the coordinator
            config: Shutdown configuration, only used on first creation
            install: Subscribe to signals and the exit event on first creation
            
        Returns:
            The process-wide ShutdownCoordinator instance
        """
        if self._coordinator is None:
            self._coordinator = ShutdownCoordinator(logger, config)
            if install:
                self._coordinator.install()
        elif config is not None and config != self._coordinator.config:
            logger.log_warning("Shutdown coordinator already exists, ignoring new configuration")
        
        return self._coordinator
    
    def get_coordinator(self) -> Optional[ShutdownCoordinator]:
        """
        Get the process coordinator.
            
        Returns:
            The coordinator instance or None if it has not been created
        """
        return self._coordinator

    def reset(self) -> None:
        """Uninstall and forget the current coordinator."""
        if self._coordinator is not None:
            self._coordinator.uninstall()
        self._coordinator = None
