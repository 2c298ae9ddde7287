from typing import Optional


class PlanforgeError(Exception):
    """Base class for every error raised while generating tests."""


class MalformedPlanError(PlanforgeError):
    def __init__(self, message: str, line: Optional[int] = None):
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)


class ConflictError(PlanforgeError):
    """A page entry with the same name but a different definition already exists."""

    def __init__(self, page: str, entry: str, name: str):
        self.page = page
        self.entry = entry
        self.name = name
        super().__init__(f"{page}: {entry} '{name}' already exists with a different definition")


class PersistenceError(PlanforgeError):
    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class DriverError(PlanforgeError):
    TIMEOUT = "timeout"
    ELEMENT_NOT_FOUND = "element_not_found"
    DIALOG_UNHANDLED = "dialog_unhandled"
    ASSERTION_FAILED = "assertion_failed"
    INVALID_ACTION = "invalid_action"

    def __init__(self, kind: str, message: str, step_index: Optional[int] = None):
        self.kind = kind
        self.step_index = step_index
        super().__init__(message)

    def __str__(self):
        text = f"[{self.kind}] {self.args[0]}"
        if self.step_index is not None:
            text = f"step {self.step_index}: {text}"
        return text


class SetupError(PlanforgeError):
    pass


class AmbiguousIntentError(PlanforgeError):
    def __init__(self, clause: str, reason: str, step_index: Optional[int] = None):
        self.clause = clause
        self.reason = reason
        self.step_index = step_index
        super().__init__(f"cannot map '{clause}' to an action: {reason}")

    def __str__(self):
        text = self.args[0]
        if self.step_index is not None:
            text = f"step {self.step_index}: {text}"
        return text


class NamingConflictError(PlanforgeError):
    def __init__(self, file_name: str):
        self.file_name = file_name
        super().__init__(f"test file '{file_name}' already exists; rename the scenario")


class ScenarioCancelledError(PlanforgeError):
    pass
