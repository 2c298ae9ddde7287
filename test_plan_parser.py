import pytest

from conftest import LOGIN_PLAN
from planforge.errors import MalformedPlanError
from planforge.plan.parser import PlanParser
from planforge.plan.selector import ScenarioSelector

CHECKOUT_PLAN = """# Shop Test Plan

Overview prose is ignored.

## 1. Cart

### 1.1 Add Item
**Seed:** `seed_logged_in.py`
**Pages:** ProductPage, CartPage

1. Navigate to product page
2. Click the 'Add to cart' button
   - Cart badge shows 1
3. Verify cart badge shows "1"

### 1.2 Remove Item
1. Navigate to cart page
2. Click the Remove button

## 2. Checkout

### 2.1 Pay
1. Navigate to checkout page
"""


def test_parse_login_plan():
    plan = PlanParser().parse(LOGIN_PLAN)
    assert plan.title == "Login Plan"
    assert [g.name for g in plan.groups] == ["Authentication"]

    scenario = plan.groups[0].scenarios[0]
    assert scenario.name == "Valid Login"
    assert scenario.ordinal == "1.1"
    assert scenario.group == "Authentication"
    assert [s.index for s in scenario.steps] == [1, 2, 3, 4]
    assert scenario.steps[2].text == "Click the Login button"


def test_parse_seed_pages_and_expectations():
    plan = PlanParser().parse(CHECKOUT_PLAN)
    add_item = plan.groups[0].scenarios[0]
    assert add_item.seed == "seed_logged_in.py"
    assert add_item.pages == ["ProductPage", "CartPage"]
    assert add_item.steps[1].expected == ["Cart badge shows 1"]
    assert len(add_item.steps) == 3
    assert [s.qualified_name for s in plan.scenarios()] == ["Cart/Add Item", "Cart/Remove Item", "Checkout/Pay"]


def test_step_numbering_gap_is_malformed():
    content = "## 1. Group\n### 1.1 Case\n1. Open app\n3. Click Save\n"
    with pytest.raises(MalformedPlanError) as exc:
        PlanParser().parse(content)
    assert exc.value.line == 4


def test_scenario_without_group_is_malformed():
    with pytest.raises(MalformedPlanError):
        PlanParser().parse("### 1.1 Orphan\n1. Click Save\n")


def test_scenario_without_steps_is_malformed():
    with pytest.raises(MalformedPlanError):
        PlanParser().parse("## 1. Group\n### 1.1 Empty\nJust prose.\n")


def test_duplicate_scenario_is_malformed():
    content = "## 1. Group\n### 1.1 Case\n1. Click Save\n### 1.2 Case\n1. Click Save\n"
    with pytest.raises(MalformedPlanError):
        PlanParser().parse(content)


def test_plan_without_groups_is_malformed():
    with pytest.raises(MalformedPlanError):
        PlanParser().parse("# Title\n\nNothing numbered here.\n")


def test_selector_forms():
    plan = PlanParser().parse(CHECKOUT_PLAN)
    assert len(ScenarioSelector().select(plan)) == 3
    assert len(ScenarioSelector("*").select(plan)) == 3
    assert ScenarioSelector("1.2").select(plan)[0].name == "Remove Item"
    assert ScenarioSelector("Checkout/Pay").select(plan)[0].ordinal == "2.1"
    assert ScenarioSelector("Add Item").select(plan)[0].group == "Cart"


def test_selector_without_match():
    plan = PlanParser().parse(CHECKOUT_PLAN)
    with pytest.raises(MalformedPlanError):
        ScenarioSelector("Cart/Pay").select(plan)
