class CleanupCommandError(Exception):
    def __init__(self, command: str, returncode: int):
        self.command = command
        self.returncode = returncode
        super().__init__(f"Cleanup command '{command}' exited with status {returncode}")

class ProgramNotFoundError(Exception):
    pass
