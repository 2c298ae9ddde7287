from enum import Enum
from typing import Iterator, List, Optional
from pydantic import BaseModel, Field

from planforge.models.page import Locator

class ActionKind(str, Enum):
    NAVIGATE = "navigate"
    FILL = "fill"
    CLICK = "click"
    SELECT_OPTION = "selectOption"
    VERIFY_VISIBLE = "verifyVisible"
    VERIFY_TEXT = "verifyText"
    VERIFY_VALUE = "verifyValue"
    HOVER = "hover"
    DRAG = "drag"
    UPLOAD = "upload"
    HANDLE_DIALOG = "handleDialog"
    PRESS_KEY = "pressKey"
    WAIT = "wait"

    @property
    def is_verification(self) -> bool:
        return self.value.startswith("verify")

class Outcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"

class Action(BaseModel):
    kind: ActionKind
    page: Optional[str] = None
    step_index: Optional[int] = None
    locator: Optional[Locator] = None
    target: Optional[Locator] = Field(None, description="Drop target for drag")
    args: List[str] = Field(default_factory=list, description="Literal argument values")
    outcome: Outcome = Outcome.SUCCESS
    error: Optional[str] = None
    attempt: int = 1

class ExecutionLog(BaseModel):
    actions: List[Action] = Field(default_factory=list)

    def __iter__(self) -> Iterator[Action]:
        return iter(self.actions)

    def __len__(self) -> int:
        return len(self.actions)

    def successful(self) -> List[Action]:
        return [action for action in self.actions if action.outcome == Outcome.SUCCESS]

    def for_step(self, step_index: int) -> List[Action]:
        return [action for action in self.successful() if action.step_index == step_index]

class GeneratedTestFile(BaseModel):
    __test__ = False

    file_name: str
    source: str
    imports: List[str] = Field(default_factory=list, description="Page names imported by the test, in first-reference order")
    scenario: str
    group: str


# Literal arguments each kind needs; wait takes a duration or a locator
REQUIRED_ARGS = {
    ActionKind.NAVIGATE: 1,
    ActionKind.FILL: 1,
    ActionKind.SELECT_OPTION: 1,
    ActionKind.VERIFY_TEXT: 1,
    ActionKind.VERIFY_VALUE: 1,
    ActionKind.UPLOAD: 1,
    ActionKind.HANDLE_DIALOG: 1,
    ActionKind.PRESS_KEY: 1,
}
NO_LOCATOR = {ActionKind.NAVIGATE, ActionKind.HANDLE_DIALOG, ActionKind.PRESS_KEY, ActionKind.WAIT}


def shape_error(kind: ActionKind, locator: Optional[Locator], target: Optional[Locator], args: List[str]) -> Optional[str]:
    """Why an action of `kind` cannot run with these operands, or None when it can."""
    if len(args) < REQUIRED_ARGS.get(kind, 0):
        return f"{kind.value} needs {REQUIRED_ARGS[kind]} argument(s), got {len(args)}"
    if kind not in NO_LOCATOR and locator is None:
        return f"{kind.value} needs a locator"
    if kind == ActionKind.DRAG and target is None:
        return "drag needs a target locator"
    if kind == ActionKind.WAIT and locator is None and not args:
        return "wait needs a duration or a locator"
    if kind == ActionKind.HANDLE_DIALOG and args[0] not in ("accept", "dismiss"):
        return f"handleDialog takes 'accept' or 'dismiss', got '{args[0]}'"
    return None
