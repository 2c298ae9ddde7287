import logging
import threading
import time
from enum import Enum
from typing import Callable, Dict, List, Optional

from planforge.driver.adapter import SessionDriver
from planforge.errors import DriverError, PlanforgeError, ScenarioCancelledError, SetupError
from planforge.executor.intent import IntentClassifier
from planforge.executor.planner import PlannedAction, StepPlanner
from planforge.models.actions import ExecutionLog
from planforge.models.page import PageObjectDefinition
from planforge.models.plan import Scenario

logger = logging.getLogger(__name__)


class ExecutorState(str, Enum):
    IDLE = "idle"
    SETUP = "setup"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ScenarioExecutor:
    """
    Walks one scenario's steps against a live session:
    IDLE -> SETUP -> RUNNING(i) -> COMPLETED | FAILED.

    Each action gets one retry after `retry_backoff` seconds. Terminal states
    are final; an executor runs once.
    """

    def __init__(
        self,
        scenario: Scenario,
        adapter: SessionDriver,
        planner: StepPlanner,
        pages: Dict[str, PageObjectDefinition],
        clause_pages: Dict[int, List[str]],
        start_url: Optional[str] = None,
        retry_backoff: float = 0.5,
        classifier: Optional[IntentClassifier] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.scenario = scenario
        self.adapter = adapter
        self.planner = planner
        self.clause_pages = clause_pages
        self.start_url = start_url
        self.retry_backoff = retry_backoff
        self.classifier = classifier or IntentClassifier()
        self.sleep = sleep
        # Working copies: locators found during this run are visible to later steps
        self.pages = {name: definition.model_copy(deep=True) for name, definition in pages.items()}

        self.state = ExecutorState.IDLE
        self.step_index: Optional[int] = None
        self.error: Optional[PlanforgeError] = None
        self.log: Optional[ExecutionLog] = None
        self._cancelled = threading.Event()

    def cancel(self):
        """Stops the run at the next action boundary."""
        self._cancelled.set()

    def _check_cancelled(self):
        if self._cancelled.is_set():
            raise ScenarioCancelledError(f"scenario '{self.scenario.name}' cancelled at step {self.step_index}")

    def run(self) -> ExecutionLog:
        if self.state != ExecutorState.IDLE:
            raise RuntimeError(f"executor for '{self.scenario.name}' already ran ({self.state.value})")

        try:
            self._setup()
            self.state = ExecutorState.RUNNING
            for step in self.scenario.steps:
                self.step_index = step.index
                self._check_cancelled()
                self._run_step(step.index, step.text)
        except PlanforgeError as e:
            self.state = ExecutorState.FAILED
            self.error = e
            self.log = self.adapter.read_log()
            logger.warning("Scenario '%s' failed: %s", self.scenario.name, e)
            raise
        except BaseException:
            self.state = ExecutorState.FAILED
            self.log = self.adapter.read_log()
            raise

        self.state = ExecutorState.COMPLETED
        self.log = self.adapter.read_log()
        logger.info("Scenario '%s' completed with %d actions", self.scenario.name, len(self.log))
        return self.log

    def _setup(self):
        self.state = ExecutorState.SETUP
        self.adapter.reset()
        self._check_cancelled()
        try:
            self.adapter.start(self.start_url)
        except DriverError as e:
            raise SetupError(f"could not open '{self.start_url or 'about:blank'}': {e}") from e

    def _run_step(self, step_index: int, text: str):
        intents = self.classifier.ensure_resolved(text, step_index)
        pages = self.clause_pages.get(step_index) or list(self.pages)[:1]
        if not pages:
            raise SetupError(f"step {step_index} has no page to act on")
        for position, intent in enumerate(intents):
            page = pages[min(position, len(pages) - 1)]
            definition = self.pages.setdefault(page, PageObjectDefinition(name=page))
            for action in self.planner.plan(intent, page, definition, step_index):
                self._check_cancelled()
                self._dispatch(step_index, action)
                self._remember(action)

    def _dispatch(self, step_index: int, action: PlannedAction):
        for attempt in (1, 2):
            try:
                with self.adapter.context(step_index, action.page, attempt):
                    self.adapter.dispatch(action.kind, action.locator, action.target, action.args)
                return
            except DriverError as e:
                if attempt == 2 or e.kind == DriverError.INVALID_ACTION:
                    e.step_index = step_index
                    raise
                logger.info("Step %d: %s failed (%s), retrying", step_index, action.kind.value, e)
                self.sleep(self.retry_backoff)

    def _remember(self, action: PlannedAction):
        definition = self.pages[action.page]
        for locator in (action.locator, action.target):
            if locator is not None and definition.locator(locator.name) is None:
                definition.locators.append(locator)
