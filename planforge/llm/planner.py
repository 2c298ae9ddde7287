import json
import logging
from typing import List, Optional

from openai import OpenAI
from pydantic import ValidationError

from planforge.config import OPENAI_API_KEY, OPENAI_BASE_URL, OPENAI_MODEL, check_api_key
from planforge.errors import AmbiguousIntentError
from planforge.executor.intent import Capability, ClassifiedIntent
from planforge.executor.planner import PlannedAction, StepPlanner
from planforge.models.actions import ActionKind, shape_error
from planforge.models.page import LOCATOR_STRATEGIES, Locator, PageObjectDefinition

logger = logging.getLogger(__name__)

# Action kinds the model may return for each classified capability
ALLOWED_KINDS = {
    Capability.NAVIGATE: {ActionKind.NAVIGATE},
    Capability.FILL: {ActionKind.FILL},
    Capability.CLICK: {ActionKind.CLICK},
    Capability.SELECT: {ActionKind.SELECT_OPTION},
    Capability.VERIFY: {ActionKind.VERIFY_VISIBLE, ActionKind.VERIFY_TEXT, ActionKind.VERIFY_VALUE},
    Capability.HOVER: {ActionKind.HOVER},
    Capability.DRAG: {ActionKind.DRAG},
    Capability.UPLOAD: {ActionKind.UPLOAD},
    Capability.DIALOG: {ActionKind.HANDLE_DIALOG},
    Capability.KEY: {ActionKind.PRESS_KEY},
    Capability.WAIT: {ActionKind.WAIT},
}

SYSTEM_PROMPT = """
You are an expert AQE (Automated Quality Engineer). Your goal is to convert ONE step of a test plan into concrete browser actions on a Page Object.

Output Schema (JSON):
{
  "actions": [
    {
      "kind": "navigate" | "fill" | "click" | "selectOption" | "verifyVisible" | "verifyText" | "verifyValue" | "hover" | "drag" | "upload" | "handleDialog" | "pressKey" | "wait",
      "locator": {"name": "snake_case_name", "strategy": "role" | "label" | "placeholder" | "text" | "testid" | "css" | "xpath", "args": {...}},
      "target": {... same shape, drag only ...},
      "args": ["literal values"]
    }
  ]
}

Rules:
1. ONLY return valid JSON. Do not include markdown formatting like ```json.
2. Reuse a locator from the page's existing locators when it describes the same element; copy it exactly.
3. Locator args: role -> {"role": ..., "name": ...}; label/placeholder/text -> {"text": ...}; testid -> {"id": ...}; css/xpath -> {"selector": ...}.
4. navigate: args = [absolute URL]. fill/selectOption/verifyText/verifyValue: args = [value]. upload: args = [file path].
   handleDialog: args = ["accept" | "dismiss"]. pressKey: args = [key name], locator optional. wait: args = [milliseconds] or a locator.
5. Only use the action kinds listed in "allowed".
"""


class LLMStepPlanner(StepPlanner):
    """Asks an OpenAI-compatible chat model to expand a classified clause into actions."""

    def __init__(self, base_url: Optional[str] = None, test_data: Optional[dict] = None, client: Optional[OpenAI] = None):
        if client is None:
            check_api_key()
            client = OpenAI(api_key=OPENAI_API_KEY, base_url=OPENAI_BASE_URL)
        self.client = client
        self.base_url = base_url
        self.test_data = test_data or {}

    def plan(self, intent: ClassifiedIntent, page: str, definition: PageObjectDefinition,
             step_index: Optional[int] = None) -> List[PlannedAction]:
        allowed = ALLOWED_KINDS.get(intent.capability)
        if not allowed:
            raise AmbiguousIntentError(intent.clause, "no known action", step_index=step_index)

        request = {
            "step": intent.clause,
            "page": page,
            "page_url": definition.url,
            "base_url": self.base_url,
            "existing_locators": [loc.model_dump() for loc in definition.locators],
            "test_data": self.test_data,
            "allowed": sorted(kind.value for kind in allowed),
        }

        logger.info("Calling LLM: %s...", OPENAI_MODEL)
        response = self.client.chat.completions.create(
            model=OPENAI_MODEL,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": json.dumps(request, ensure_ascii=False)}
            ],
            temperature=0.0
        )

        content = response.choices[0].message.content.strip()
        # Clean up potential markdown formatting if the model disobeys
        if content.startswith("```json"):
            content = content[7:]
        if content.endswith("```"):
            content = content[:-3]

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise AmbiguousIntentError(intent.clause, f"model returned invalid JSON: {e}", step_index=step_index) from e
        logger.debug("Parsed JSON: %s", data)

        items = data.get("actions") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise AmbiguousIntentError(intent.clause, "model reply has no 'actions' list", step_index=step_index)

        actions = []
        for item in items:
            if not isinstance(item, dict):
                raise AmbiguousIntentError(intent.clause, f"model returned a malformed action: {item!r}", step_index=step_index)
            try:
                kind = ActionKind(item.get("kind"))
            except ValueError:
                raise AmbiguousIntentError(intent.clause, f"model returned unknown action '{item.get('kind')}'", step_index=step_index)
            if kind not in allowed:
                raise AmbiguousIntentError(intent.clause, f"model returned '{kind.value}' for a {intent.capability.value} step", step_index=step_index)

            args = item.get("args") or []
            if not isinstance(args, list):
                args = [args]
            action = PlannedAction(
                kind=kind,
                page=page,
                clause=intent.clause,
                locator=self._locator(item.get("locator"), definition, intent, step_index),
                target=self._locator(item.get("target"), definition, intent, step_index),
                args=[str(arg) for arg in args],
            )
            problem = shape_error(action.kind, action.locator, action.target, action.args)
            if problem:
                raise AmbiguousIntentError(intent.clause, f"model returned an incomplete action: {problem}", step_index=step_index)
            actions.append(action)

        if not actions:
            raise AmbiguousIntentError(intent.clause, "model returned no actions", step_index=step_index)
        return actions

    @staticmethod
    def _locator(data, definition: PageObjectDefinition, intent: ClassifiedIntent, step_index) -> Optional[Locator]:
        if not data:
            return None
        if not isinstance(data, dict):
            raise AmbiguousIntentError(intent.clause, f"malformed locator {data!r}", step_index=step_index)
        try:
            locator = Locator(**data)
        except ValidationError as e:
            raise AmbiguousIntentError(intent.clause, f"malformed locator: {e.errors()[0]['msg']}", step_index=step_index) from e
        if locator.strategy not in LOCATOR_STRATEGIES:
            raise AmbiguousIntentError(intent.clause, f"unknown locator strategy '{locator.strategy}'", step_index=step_index)
        # Keep the library's entry when the model names an existing locator
        return definition.locator(locator.name) or locator
