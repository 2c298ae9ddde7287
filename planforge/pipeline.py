import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional

from planforge.compiler.binding import ExtensionPlanner
from planforge.compiler.compiler import Compiler, output_file_name
from planforge.config import GeneratorConfig
from planforge.driver.adapter import SessionDriver
from planforge.driver.engine import AutomationEngine
from planforge.errors import NamingConflictError, PersistenceError, PlanforgeError
from planforge.executor.executor import ScenarioExecutor
from planforge.executor.planner import RuleStepPlanner, StepPlanner
from planforge.library.repository import ObjectLibrary
from planforge.library.store import FileStore
from planforge.models.actions import ExecutionLog, GeneratedTestFile
from planforge.models.page import PageObjectDefinition
from planforge.models.plan import Scenario
from planforge.plan.parser import PlanParser
from planforge.plan.selector import ScenarioSelector
from planforge.resolver.pages import PageResolver

logger = logging.getLogger(__name__)


@dataclass
class ScenarioResult:
    scenario: Scenario
    test_file: Optional[GeneratedTestFile] = None
    error: Optional[PlanforgeError] = None
    log: Optional[ExecutionLog] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Pipeline:
    """
    plan text -> scenarios -> pages -> live run -> page library extension -> test file.

    Every scenario is all-or-nothing: its page changes and its test file are
    written together, or not at all.
    """

    def __init__(
        self,
        config: GeneratorConfig,
        engine_factory: Callable[[], AutomationEngine],
        store: Optional[FileStore] = None,
        planner: Optional[StepPlanner] = None,
        library: Optional[ObjectLibrary] = None,
    ):
        self.config = config
        self.engine_factory = engine_factory
        self.store = store or FileStore()
        self.library = library or ObjectLibrary(self.store, config.pages_dir)
        self.resolver = PageResolver(config, self.library.discover())
        self.planner = planner or RuleStepPlanner(config, self.resolver)
        self.compiler = Compiler(pages_package=config.pages_dir, fold_mode=config.fold_mode)
        self._names_lock = threading.Lock()
        self._claimed_names = set()
        self._executors = {}

    def generate(self, plan_text: str, scenario_selector: Optional[str] = None,
                 max_workers: int = 1) -> List[ScenarioResult]:
        """
        Raises MalformedPlanError before any scenario starts; every other error
        is reported on the result of the scenario it belongs to.
        """
        plan = PlanParser().parse(plan_text)
        scenarios = ScenarioSelector(scenario_selector).select(plan)
        logger.info("Generating %d scenario(s)", len(scenarios))

        if max_workers <= 1 or len(scenarios) == 1:
            return [self.generate_scenario(scenario) for scenario in scenarios]

        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            return list(pool.map(self.generate_scenario, scenarios))

    def cancel(self, scenario: Scenario):
        """Aborts a running scenario; nothing of it is persisted."""
        executor = self._executors.get(scenario.qualified_name)
        if executor is not None:
            executor.cancel()

    def generate_scenario(self, scenario: Scenario) -> ScenarioResult:
        result = ScenarioResult(scenario=scenario)
        file_name = output_file_name(scenario.name)
        try:
            self._claim_name(file_name)
        except NamingConflictError as e:
            result.error = e
            return result

        try:
            result.test_file, result.log = self._generate(scenario)
        except PlanforgeError as e:
            result.error = e
            logger.error("Scenario '%s' failed: %s", scenario.name, e)
        finally:
            self._executors.pop(scenario.qualified_name, None)
            if result.error is not None:
                self._release_name(file_name)
        return result

    def _claim_name(self, file_name: str):
        with self._names_lock:
            if file_name in self._claimed_names or self.store.exists(f"{self.config.tests_dir}/{file_name}"):
                raise NamingConflictError(file_name)
            self._claimed_names.add(file_name)

    def _release_name(self, file_name: str):
        with self._names_lock:
            self._claimed_names.discard(file_name)

    def _start_url(self, scenario: Scenario, first_page: PageObjectDefinition) -> Optional[str]:
        if scenario.seed and scenario.seed in self.config.seeds:
            return self.config.absolute_url(self.config.seeds[scenario.seed])
        return self.config.page_url(first_page.name) or first_page.url or self.config.base_url

    def _generate(self, scenario: Scenario):
        page_names, clause_pages = self.resolver.resolve_scenario(scenario)
        pages = self.library.resolve(page_names)

        adapter = SessionDriver(self.engine_factory())
        executor = ScenarioExecutor(
            scenario,
            adapter,
            self.planner,
            pages,
            clause_pages,
            start_url=self._start_url(scenario, pages[page_names[0]]),
            retry_backoff=self.config.retry_backoff,
        )
        self._executors[scenario.qualified_name] = executor
        try:
            log = executor.run()
        finally:
            adapter.close()

        try:
            with self.library.transaction(page_names) as library:
                current = library.resolve(page_names)
                _, extensions = ExtensionPlanner(self.config.fold_mode).plan(scenario, current, log)
                for page, extension in extensions.items():
                    library.extend(page, extension.locators, extension.actions, url=extension.url)

                resolved = library.resolve(page_names)
                existing = self.store.list(self.config.tests_dir, ".py")
                test_file = self.compiler.synthesize(scenario, resolved, log, extensions, existing_files=existing)

                test_path = f"{self.config.tests_dir}/{test_file.file_name}"
                library.persist(page_names, extra_files={test_path: test_file.source})
        except PersistenceError:
            # A retry of this scenario must start from what is on disk now
            self.library.resolve(page_names, reload=True)
            raise

        logger.info("Saved %s to %s", scenario.qualified_name, self.store.path(test_path))
        return test_file, log
