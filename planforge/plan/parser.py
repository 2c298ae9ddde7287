"""
Plan Parser
Parses markdown test plans into structured TestPlan objects
"""

import re
from typing import List, Optional

from planforge.errors import MalformedPlanError
from planforge.models.plan import Scenario, Step, TestGroup, TestPlan

HEADING_RE = re.compile(r'^(#{1,6})\s+(.*?)\s*#*\s*$')
GROUP_RE = re.compile(r'^(\d+)\.?\s+(.+)$')
SCENARIO_RE = re.compile(r'^(\d+(?:\.\d+)+)\.?\s+(.+)$')
STEP_RE = re.compile(r'^(\d+)[.)]\s+(.+)$')
BULLET_RE = re.compile(r'^[-*+]\s+(.+)$')
SEED_RE = re.compile(r'^\*\*Seed:?\*\*:?\s*`?([^`]+?)`?\s*$', re.IGNORECASE)
PAGES_RE = re.compile(r'^\*\*Pages:?\*\*:?\s*(.+)$', re.IGNORECASE)


class _ScenarioDraft:
    def __init__(self, name: str, ordinal: str, group: str, line: int):
        self.name = name
        self.ordinal = ordinal
        self.group = group
        self.line = line
        self.seed: Optional[str] = None
        self.pages: List[str] = []
        self.steps: List[dict] = []

    def build(self) -> Scenario:
        if not self.steps:
            raise MalformedPlanError(f"scenario '{self.name}' has no steps", self.line)
        steps = [Step(index=s['index'], text=s['text'], expected=s['expected']) for s in self.steps]
        return Scenario(
            name=self.name,
            ordinal=self.ordinal,
            group=self.group,
            steps=steps,
            seed=self.seed,
            pages=self.pages,
        )


class PlanParser:
    """Parse markdown test plans into TestPlan objects"""

    def parse(self, content: str) -> TestPlan:
        """
        Parse a complete plan document.

        Args:
            content: The markdown plan as a string

        Returns:
            TestPlan object

        Raises:
            MalformedPlanError: when groups, scenarios or step numbering cannot be recovered
        """
        title = None
        groups: List[dict] = []
        current_scenario: Optional[_ScenarioDraft] = None

        for line_no, raw in enumerate(content.splitlines(), 1):
            stripped = raw.strip()
            if not stripped:
                continue

            heading = HEADING_RE.match(stripped)
            if heading:
                text = heading.group(2).strip()

                scenario_match = SCENARIO_RE.match(text)
                if scenario_match:
                    if not groups:
                        raise MalformedPlanError(f"scenario '{text}' appears before any group", line_no)
                    self._close_scenario(groups[-1], current_scenario)
                    current_scenario = _ScenarioDraft(
                        name=scenario_match.group(2).strip(),
                        ordinal=scenario_match.group(1),
                        group=groups[-1]['name'],
                        line=line_no,
                    )
                    continue

                group_match = GROUP_RE.match(text)
                if group_match:
                    if groups:
                        self._close_scenario(groups[-1], current_scenario)
                    current_scenario = None
                    name = group_match.group(2).strip()
                    if any(g['name'] == name for g in groups):
                        raise MalformedPlanError(f"duplicate group '{name}'", line_no)
                    groups.append({'name': name, 'ordinal': group_match.group(1), 'line': line_no, 'scenarios': []})
                    continue

                # Unnumbered heading: plan title or prose section
                if title is None and not groups:
                    title = text
                continue

            if current_scenario is None:
                # Prose outside scenarios (plan overview, group description)
                continue

            seed = SEED_RE.match(stripped)
            if seed:
                current_scenario.seed = seed.group(1).strip()
                continue

            pages = PAGES_RE.match(stripped)
            if pages:
                names = [p.strip(' `') for p in pages.group(1).split(',')]
                current_scenario.pages = [n for n in names if n]
                continue

            step = STEP_RE.match(stripped)
            if step and not raw.startswith((' ' * 3, '\t')):
                index = int(step.group(1))
                expected_index = len(current_scenario.steps) + 1
                if index != expected_index:
                    raise MalformedPlanError(
                        f"scenario '{current_scenario.name}': expected step {expected_index}, found {index}",
                        line_no,
                    )
                current_scenario.steps.append({'index': index, 'text': step.group(2).strip(), 'expected': []})
                continue

            bullet = BULLET_RE.match(stripped)
            if bullet and current_scenario.steps and raw[:1] in (' ', '\t'):
                current_scenario.steps[-1]['expected'].append(bullet.group(1).strip())
                continue

        if groups:
            self._close_scenario(groups[-1], current_scenario)

        if not groups:
            raise MalformedPlanError("plan contains no numbered groups")

        plan_groups = []
        for group in groups:
            if not group['scenarios']:
                raise MalformedPlanError(f"group '{group['name']}' has no scenarios", group['line'])
            plan_groups.append(TestGroup(name=group['name'], ordinal=group['ordinal'], scenarios=group['scenarios']))

        return TestPlan(title=title, groups=plan_groups)

    @staticmethod
    def _close_scenario(group: dict, draft: Optional[_ScenarioDraft]):
        if draft is None:
            return
        if any(s.name == draft.name for s in group['scenarios']):
            raise MalformedPlanError(f"duplicate scenario '{draft.name}' in group '{group['name']}'", draft.line)
        group['scenarios'].append(draft.build())
