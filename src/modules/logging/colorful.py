import click
from .base import BaseLogger
import sys


class ColorfulLogger(BaseLogger):
    """Logger that outputs colorful text for interactive terminals."""
    
    def __init__(self, log_level: str = "INFO"):
        super().__init__(log_level)
        # Configure loguru for colored output
        self.logger.configure(
            handlers=[{
                "sink": sys.stderr,
                "colorize": True,
                "format": "<cyan>{time:YYYY-MM-DD HH:mm:ss.SSS}</cyan> | "
                         "<level>{level: <8}</level> | "
                         "<white>{message}</white>",
                "level": log_level
            }]
        )
    
    def log_trigger(self, trigger: str):
        self.logger.info(click.style(f"Received {trigger}, initiating graceful shutdown...", fg="yellow", bold=True))

    def log_action(self, position: int, total: int, name: str):
        self.logger.info(
            click.style(f"[{position}/{total}] ", fg="cyan", bold=True)
            + click.style(f"Executing shutdown action: {name}", fg="white")
        )

    def log_error(self, message: str):
        self.logger.error(click.style(message, fg="red", bold=True))

    def log_warning(self, message: str):
        self.logger.warning(click.style(message, fg="yellow", bold=True))

    def log_info(self, message: str):
        self.logger.info(click.style(message, fg="white"))

    def log_debug(self, message: str):
        self.logger.debug(click.style(message, fg="blue"))
