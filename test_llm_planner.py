import json
from types import SimpleNamespace

import pytest

from conftest import FakeEngine
from planforge.errors import AmbiguousIntentError
from planforge.executor.intent import IntentClassifier
from planforge.library.store import FileStore
from planforge.llm.planner import LLMStepPlanner
from planforge.models.actions import ActionKind
from planforge.models.page import Locator, PageObjectDefinition
from planforge.pipeline import Pipeline


class FakeCompletions:
    def __init__(self, content):
        self.content = content
        self.requests = []

    def create(self, **kwargs):
        self.requests.append(kwargs)
        content = self.content
        if isinstance(content, dict):
            # Reply chosen by the step text of the request
            content = content[json.loads(kwargs["messages"][1]["content"])["step"]]
        message = SimpleNamespace(content=content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _planner(content):
    completions = FakeCompletions(content)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return LLMStepPlanner(base_url="https://app.test", client=client), completions


def _intent(text):
    return IntentClassifier().classify(text)[0]


def test_actions_from_model_reply():
    reply = {"actions": [
        {"kind": "click", "locator": {"name": "login_button", "strategy": "role",
                                      "args": {"role": "button", "name": "Log in"}}},
    ]}
    planner, completions = _planner("```json\n" + json.dumps(reply) + "\n```")
    existing = Locator(name="login_button", strategy="css", args={"selector": "#login"})
    definition = PageObjectDefinition(name="LoginPage", locators=[existing])

    actions = planner.plan(_intent("Click the Login button"), "LoginPage", definition, step_index=3)
    assert [a.kind for a in actions] == [ActionKind.CLICK]
    assert actions[0].locator == existing
    request = json.loads(completions.requests[0]["messages"][1]["content"])
    assert request["allowed"] == ["click"]


def test_kind_outside_capability_is_rejected():
    planner, _ = _planner(json.dumps({"actions": [{"kind": "navigate", "args": ["https://app.test"]}]}))
    with pytest.raises(AmbiguousIntentError) as exc:
        planner.plan(_intent("Click the Login button"), "LoginPage", PageObjectDefinition(name="LoginPage"), 2)
    assert exc.value.step_index == 2


def test_invalid_json_is_ambiguous():
    planner, _ = _planner("I think you should click it")
    with pytest.raises(AmbiguousIntentError):
        planner.plan(_intent("Click the Login button"), "LoginPage", PageObjectDefinition(name="LoginPage"))


def test_empty_reply_is_ambiguous():
    planner, _ = _planner(json.dumps({"actions": []}))
    with pytest.raises(AmbiguousIntentError):
        planner.plan(_intent("Verify dashboard is displayed"), "DashboardPage", PageObjectDefinition(name="DashboardPage"))


@pytest.mark.parametrize("action", [
    {"kind": "click"},
    {"kind": "click", "locator": {"name": "login_button"}},
    {"kind": "click", "locator": {"name": "login_button", "strategy": "role", "args": {"role": 1}}},
    {"kind": "click", "locator": "the login button"},
])
def test_malformed_locator_is_ambiguous(action):
    planner, _ = _planner(json.dumps({"actions": [action]}))
    with pytest.raises(AmbiguousIntentError):
        planner.plan(_intent("Click the Login button"), "LoginPage", PageObjectDefinition(name="LoginPage"), 3)


@pytest.mark.parametrize("action", [
    {"kind": "navigate"},
    {"kind": "navigate", "args": None},
    {"kind": "navigate", "args": []},
])
def test_missing_arguments_are_ambiguous(action):
    planner, _ = _planner(json.dumps({"actions": [action]}))
    with pytest.raises(AmbiguousIntentError) as exc:
        planner.plan(_intent("Navigate to login page"), "LoginPage", PageObjectDefinition(name="LoginPage"), 1)
    assert exc.value.step_index == 1


def test_reply_without_action_list_is_ambiguous():
    planner, _ = _planner(json.dumps(["navigate"]))
    with pytest.raises(AmbiguousIntentError):
        planner.plan(_intent("Navigate to login page"), "LoginPage", PageObjectDefinition(name="LoginPage"))


def test_bad_reply_fails_only_its_scenario(login_config, tmp_path):
    plan = (
        "## 1. Mixed\n"
        "### 1.1 Model Navigates\n1. Navigate to login page\n"
        "### 1.2 Model Clicks\n1. Click the Login button\n"
    )
    click = {"kind": "click", "locator": {
        "name": "login_button", "strategy": "role", "args": {"role": "button", "name": "Login"}}}
    planner, _ = _planner({
        "Navigate to login page": json.dumps({"actions": [{"kind": "navigate"}]}),
        "Click the Login button": json.dumps({"actions": [click]}),
    })
    pipeline = Pipeline(login_config, FakeEngine, store=FileStore(str(tmp_path)), planner=planner)

    first, second = pipeline.generate(plan)

    assert isinstance(first.error, AmbiguousIntentError)
    assert second.ok, second.error
    assert "click_login_button()" in second.test_file.source
