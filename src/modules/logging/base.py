from abc import ABC, abstractmethod
from loguru import logger


class BaseLogger(ABC):
    """Abstract base class for loggers."""
    
    def __init__(self, log_level: str = "INFO"):
        self.logger = logger
        self.log_level = log_level
    
    @abstractmethod
    def log_trigger(self, trigger: str):
        """Log a termination trigger that started a shutdown."""
        pass

    @abstractmethod
    def log_action(self, position: int, total: int, name: str):
        """Log a shutdown action about to run."""
        pass

    @abstractmethod
    def log_error(self, message: str):
        """Log an error message."""
        pass

    @abstractmethod
    def log_warning(self, message: str):
        """Log a warning message."""
        pass

    @abstractmethod
    def log_info(self, message: str):
        """Log an info message."""
        pass

    @abstractmethod
    def log_debug(self, message: str):
        """Log a debug message."""
        pass
