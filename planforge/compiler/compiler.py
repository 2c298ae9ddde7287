from typing import Dict, Iterable, List, Optional

from planforge.compiler.binding import ExtensionPlanner, MethodCall, PageExtension
from planforge.errors import NamingConflictError
from planforge.library.renderer import module_name
from planforge.models.actions import ExecutionLog, GeneratedTestFile
from planforge.models.page import PageObjectDefinition
from planforge.models.plan import Scenario
from planforge.naming import slugify, to_pascal_case, to_snake_case


def output_file_name(scenario_name: str) -> str:
    return f"test_{slugify(scenario_name)}.py"


def _literal(value) -> str:
    return repr(value)


class Compiler:
    def __init__(self, pages_package: str = "pages", fold_mode: str = "always"):
        self.pages_package = pages_package.strip("/").replace("/", ".")
        self.fold_mode = fold_mode

    def synthesize(
        self,
        scenario: Scenario,
        resolved_pages: Dict[str, PageObjectDefinition],
        log: ExecutionLog,
        newly_extended: Dict[str, PageExtension],
        existing_files: Iterable[str] = (),
    ) -> GeneratedTestFile:
        """
        Builds the test module for one completed scenario. `resolved_pages` must
        already include `newly_extended`; only methods present there are called.
        """
        file_name = output_file_name(scenario.name)
        if file_name in set(existing_files):
            raise NamingConflictError(file_name)

        self._check_extended(resolved_pages, newly_extended)
        calls, missing = ExtensionPlanner(self.fold_mode).plan(scenario, resolved_pages, log)
        if missing:
            raise RuntimeError(f"'{scenario.name}' needs page entries that were never registered: {sorted(missing)}")

        pages = self._pages_in_order(scenario, calls)
        lines = []
        lines.append("from playwright.sync_api import Page")
        lines.append("")
        for page in pages:
            lines.append(f"from {self.pages_package}.{module_name(page)} import {page}")
        lines.append("")
        lines.append("")
        lines.append(f"# Test Case: {scenario.name}")
        if scenario.seed:
            lines.append(f"# Seed: {scenario.seed}")
        lines.append(f"class Test{to_pascal_case(scenario.group) or 'Group'}:")
        lines.append(f"    {_literal(scenario.group)}")
        lines.append("")
        lines.append(f"    def test_{to_snake_case(scenario.name) or 'scenario'}(self, page: Page):")
        lines.append(f"        {_literal(scenario.name)}")
        for page in pages:
            lines.append(f"        {self._variable(page)} = {page}(page)")

        for step in scenario.steps:
            lines.append("")
            lines.append(f"        # {step.index}. {step.text}")
            for call in calls.get(step.index, []):
                self._check_call(call, resolved_pages)
                args = ", ".join(_literal(arg) for arg in call.args)
                lines.append(f"        {self._variable(call.page)}.{call.method}({args})")

        return GeneratedTestFile(
            file_name=file_name,
            source="\n".join(lines) + "\n",
            imports=pages,
            scenario=scenario.name,
            group=scenario.group,
        )

    @staticmethod
    def _variable(page_name: str) -> str:
        return to_snake_case(page_name)

    @staticmethod
    def _pages_in_order(scenario: Scenario, calls: Dict[int, List[MethodCall]]) -> List[str]:
        pages: List[str] = []
        for step in scenario.steps:
            for call in calls.get(step.index, []):
                if call.page not in pages:
                    pages.append(call.page)
        return pages

    @staticmethod
    def _check_extended(resolved_pages: Dict[str, PageObjectDefinition], newly_extended: Dict[str, PageExtension]):
        for page, extension in newly_extended.items():
            definition = resolved_pages.get(page)
            for method in extension.actions:
                if definition is None or definition.action(method.name) is None:
                    raise RuntimeError(f"{page}.{method.name} was not added to the library")

    @staticmethod
    def _check_call(call: MethodCall, resolved_pages: Dict[str, PageObjectDefinition]):
        definition: Optional[PageObjectDefinition] = resolved_pages.get(call.page)
        method = definition.action(call.method) if definition else None
        if method is None:
            raise RuntimeError(f"{call.page}.{call.method} is not defined")
        if len(method.params) != len(call.args):
            raise RuntimeError(f"{call.page}.{call.method} takes {len(method.params)} arguments, got {len(call.args)}")
