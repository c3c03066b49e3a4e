from typing import Optional


class RegistrationError(Exception):
    pass

class ActionFailure(Exception):
    def __init__(self, action_name: str, error: Optional[BaseException] = None, message: Optional[str] = None):
        self.action_name = action_name
        self.error = error
        super().__init__(message or f"Error in shutdown action {action_name}: {error}")

class ActionTimeoutError(ActionFailure):
    def __init__(self, action_name: str, timeout: float):
        self.timeout = timeout
        super().__init__(
            action_name,
            message=f"Shutdown action {action_name} timed out after {timeout} seconds"
        )
