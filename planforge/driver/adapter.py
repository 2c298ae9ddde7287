import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

from planforge.driver.engine import AutomationEngine
from planforge.errors import DriverError
from planforge.models.actions import Action, ActionKind, ExecutionLog, Outcome, shape_error
from planforge.models.page import Locator

logger = logging.getLogger(__name__)


class SessionDriver:
    """
    Typed facade over an AutomationEngine: one method per action kind, each
    call recorded in the execution log. No retries happen here.
    """

    def __init__(self, engine: AutomationEngine):
        self.engine = engine
        self._log: List[Action] = []
        self._step_index: Optional[int] = None
        self._page: Optional[str] = None
        self._attempt = 1

    def reset(self):
        self._log = []
        self._step_index = None
        self._page = None
        self._attempt = 1

    def read_log(self) -> ExecutionLog:
        return ExecutionLog(actions=list(self._log))

    @contextmanager
    def context(self, step_index: Optional[int], page: Optional[str], attempt: int = 1) -> Iterator[None]:
        """Tags the actions recorded inside the block with a step, page and attempt number."""
        previous = (self._step_index, self._page, self._attempt)
        self._step_index, self._page, self._attempt = step_index, page, attempt
        try:
            yield
        finally:
            self._step_index, self._page, self._attempt = previous

    def start(self, url: Optional[str] = None):
        try:
            self.engine.start(url)
        except DriverError:
            raise
        except Exception as e:
            raise DriverError(DriverError.TIMEOUT, f"could not start session: {e}") from e

    def close(self):
        self.engine.close()

    def _record(self, kind: ActionKind, call, locator: Optional[Locator] = None,
                target: Optional[Locator] = None, args: Optional[List[str]] = None):
        action = Action(
            kind=kind,
            page=self._page,
            step_index=self._step_index,
            locator=locator,
            target=target,
            args=list(args or []),
            attempt=self._attempt,
        )
        try:
            result = call()
            if kind.is_verification and result is False:
                raise DriverError(DriverError.ASSERTION_FAILED, f"{kind.value} failed on '{locator.name}'")
        except DriverError as e:
            action.outcome = Outcome.FAILURE
            action.error = str(e)
            self._log.append(action)
            logger.debug("%s failed: %s", kind.value, e)
            raise
        self._log.append(action)
        return result

    def navigate(self, url: str):
        return self._record(ActionKind.NAVIGATE, lambda: self.engine.navigate(url), args=[url])

    def fill(self, locator: Locator, value: str):
        return self._record(ActionKind.FILL, lambda: self.engine.fill(locator, value), locator, args=[value])

    def click(self, locator: Locator):
        return self._record(ActionKind.CLICK, lambda: self.engine.click(locator), locator)

    def select_option(self, locator: Locator, value: str):
        return self._record(ActionKind.SELECT_OPTION, lambda: self.engine.select(locator, value), locator, args=[value])

    def hover(self, locator: Locator):
        return self._record(ActionKind.HOVER, lambda: self.engine.hover(locator), locator)

    def drag(self, source: Locator, target: Locator):
        return self._record(ActionKind.DRAG, lambda: self.engine.drag(source, target), source, target=target)

    def upload(self, locator: Locator, files: List[str]):
        return self._record(ActionKind.UPLOAD, lambda: self.engine.upload(locator, files), locator, args=list(files))

    def handle_dialog(self, action: str):
        return self._record(ActionKind.HANDLE_DIALOG, lambda: self.engine.handle_dialog(action), args=[action])

    def press_key(self, locator: Optional[Locator], key: str):
        return self._record(ActionKind.PRESS_KEY, lambda: self.engine.press_key(locator, key), locator, args=[key])

    def wait(self, condition: Optional[str] = None, locator: Optional[Locator] = None):
        args = [] if locator is not None else [condition or "1000"]
        return self._record(ActionKind.WAIT, lambda: self.engine.wait(condition or "", locator), locator, args=args)

    def verify_visible(self, locator: Locator):
        return self._record(ActionKind.VERIFY_VISIBLE, lambda: self.engine.verify_visible(locator), locator)

    def verify_text(self, locator: Locator, expected: str):
        return self._record(ActionKind.VERIFY_TEXT, lambda: self.engine.verify_text(locator, expected), locator, args=[expected])

    def verify_value(self, locator: Locator, expected: str):
        return self._record(ActionKind.VERIFY_VALUE, lambda: self.engine.verify_value(locator, expected), locator, args=[expected])

    def dispatch(self, kind: ActionKind, locator: Optional[Locator] = None,
                 target: Optional[Locator] = None, args: Optional[List[str]] = None):
        """
        Routes a planned action to the matching typed method. An action missing
        its arguments or locators raises DriverError(INVALID_ACTION) without
        reaching the engine.
        """
        args = list(args or [])
        problem = shape_error(kind, locator, target, args)
        if problem:
            raise DriverError(DriverError.INVALID_ACTION, problem)
        if kind == ActionKind.NAVIGATE:
            return self.navigate(args[0])
        elif kind == ActionKind.FILL:
            return self.fill(locator, args[0])
        elif kind == ActionKind.CLICK:
            return self.click(locator)
        elif kind == ActionKind.SELECT_OPTION:
            return self.select_option(locator, args[0])
        elif kind == ActionKind.HOVER:
            return self.hover(locator)
        elif kind == ActionKind.DRAG:
            return self.drag(locator, target)
        elif kind == ActionKind.UPLOAD:
            return self.upload(locator, args)
        elif kind == ActionKind.HANDLE_DIALOG:
            return self.handle_dialog(args[0])
        elif kind == ActionKind.PRESS_KEY:
            return self.press_key(locator, args[0])
        elif kind == ActionKind.WAIT:
            return self.wait(args[0] if args else None, locator)
        elif kind == ActionKind.VERIFY_VISIBLE:
            return self.verify_visible(locator)
        elif kind == ActionKind.VERIFY_TEXT:
            return self.verify_text(locator, args[0])
        elif kind == ActionKind.VERIFY_VALUE:
            return self.verify_value(locator, args[0])
        raise DriverError(DriverError.INVALID_ACTION, f"unsupported action kind: {kind}")
