import re
from typing import List, Optional

from planforge.errors import MalformedPlanError
from planforge.models.plan import Scenario, TestPlan

ORDINAL_RE = re.compile(r'^\d+(\.\d+)+$')


class ScenarioSelector:
    """
    Picks scenarios out of a plan.

    Accepted forms: None or '*' (everything), an ordinal such as '1.2',
    'Group name/Scenario name', or a bare scenario name.
    """

    def __init__(self, expression: Optional[str] = None):
        self.expression = (expression or '*').strip()

    def select(self, plan: TestPlan) -> List[Scenario]:
        scenarios = plan.scenarios()
        expr = self.expression

        if expr == '*':
            selected = scenarios
        elif ORDINAL_RE.match(expr):
            selected = [s for s in scenarios if s.ordinal == expr]
        elif '/' in expr:
            group, _, name = expr.partition('/')
            selected = [s for s in scenarios if s.group == group.strip() and s.name == name.strip()]
        else:
            selected = [s for s in scenarios if s.name == expr]

        if not selected:
            raise MalformedPlanError(f"no scenario matches '{expr}'")
        return selected
