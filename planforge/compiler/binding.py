"""
Extension pass: maps the successful actions of an execution log onto
page-object methods, proposing new locators and methods where the library
has none.

Folding (`fold_mode`) decides what happens to consecutive actions of one step
on one page:
  none      every action becomes its own method call
  existing  fold only when the page already has a method doing exactly that sequence
  always    fold, creating a composite method named after the step when needed
"""
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from planforge.models.actions import Action, ActionKind, ExecutionLog
from planforge.models.page import ActionMethod, ActionTemplate, Locator, PageObjectDefinition
from planforge.models.plan import Scenario
from planforge.naming import parameter_name, to_snake_case

FIELD_SUFFIX_RE = re.compile(r"_(field|input|box|textbox|textarea|area|dropdown|select|combobox|picker)$")
COMPOSITE_NAME_WORDS = 6

CallArg = Union[str, List[str]]


@dataclass
class MethodCall:
    page: str
    method: str
    args: List[CallArg] = field(default_factory=list)
    verification: bool = False


@dataclass
class PageExtension:
    locators: List[Locator] = field(default_factory=list)
    actions: List[ActionMethod] = field(default_factory=list)
    url: Optional[str] = None

    def is_empty(self) -> bool:
        return not self.locators and not self.actions and self.url is None


def _param_base(locator_name: str) -> str:
    return FIELD_SUFFIX_RE.sub("", locator_name) or locator_name


def _template(action: Action, definition: PageObjectDefinition) -> Tuple[ActionTemplate, List[CallArg]]:
    """The reusable template of one logged action plus the literal arguments of the call."""
    kind = action.kind
    locator = action.locator.name if action.locator else None
    target = action.target.name if action.target else None

    if kind == ActionKind.NAVIGATE:
        url = action.args[0]
        if definition.url == url:
            return ActionTemplate(kind=kind.value), []
        return ActionTemplate(kind=kind.value, params=["url"]), [url]
    if kind == ActionKind.UPLOAD:
        files = action.args[0] if len(action.args) == 1 else list(action.args)
        return ActionTemplate(kind=kind.value, locator=locator, params=["files"]), [files]
    if kind == ActionKind.WAIT and locator:
        return ActionTemplate(kind=kind.value, locator=locator), []

    names = {
        ActionKind.FILL: lambda: [parameter_name(_param_base(locator))],
        ActionKind.SELECT_OPTION: lambda: ["option"],
        ActionKind.VERIFY_TEXT: lambda: ["expected"],
        ActionKind.VERIFY_VALUE: lambda: ["expected"],
        ActionKind.HANDLE_DIALOG: lambda: ["action"],
        ActionKind.PRESS_KEY: lambda: ["key"],
        ActionKind.WAIT: lambda: ["milliseconds"],
    }
    params = names[kind]() if kind in names else []
    return ActionTemplate(kind=kind.value, locator=locator, target=target, params=params), list(action.args[:len(params)])


def _single_method_name(template: ActionTemplate) -> str:
    kind = ActionKind(template.kind)
    loc = template.locator
    if kind == ActionKind.NAVIGATE:
        return "navigate_to" if template.params else "navigate"
    if kind == ActionKind.FILL:
        return f"fill_{_param_base(loc)}"
    if kind == ActionKind.CLICK:
        return f"click_{loc}"
    if kind == ActionKind.SELECT_OPTION:
        return f"select_{_param_base(loc)}"
    if kind == ActionKind.HOVER:
        return f"hover_{loc}"
    if kind == ActionKind.DRAG:
        return f"drag_{loc}_to_{template.target}"
    if kind == ActionKind.UPLOAD:
        return f"upload_{_param_base(loc)}"
    if kind == ActionKind.HANDLE_DIALOG:
        return "handle_dialog"
    if kind == ActionKind.PRESS_KEY:
        return f"press_key_in_{loc}" if loc else "press_key"
    if kind == ActionKind.WAIT:
        return f"wait_for_{loc}" if loc else "wait"
    if kind == ActionKind.VERIFY_VISIBLE:
        return f"verify_{loc}_visible"
    if kind == ActionKind.VERIFY_TEXT:
        return f"verify_{loc}_text"
    return f"verify_{loc}_value"


def _unique_name(definition: PageObjectDefinition, base: str) -> str:
    name = base
    suffix = 2
    while definition.action(name) is not None:
        name = f"{base}_{suffix}"
        suffix += 1
    return name


def _composite(templates: List[ActionTemplate], name: str) -> ActionMethod:
    used = set()
    body = []
    params = []
    for template in templates:
        renamed = []
        for param in template.params:
            candidate = param
            suffix = 2
            while candidate in used:
                candidate = f"{param}_{suffix}"
                suffix += 1
            used.add(candidate)
            renamed.append(candidate)
        params.extend(renamed)
        body.append(template.model_copy(update={"params": renamed}))
    return ActionMethod(name=name, params=params, body=body)


def _runs(actions: List[Action]) -> List[List[Action]]:
    """Consecutive actions on the same page."""
    runs: List[List[Action]] = []
    for action in actions:
        if runs and runs[-1][-1].page == action.page:
            runs[-1].append(action)
        else:
            runs.append([action])
    return runs


class ExtensionPlanner:
    def __init__(self, fold_mode: str = "always"):
        self.fold_mode = fold_mode

    def plan(
        self,
        scenario: Scenario,
        pages: Dict[str, PageObjectDefinition],
        log: ExecutionLog,
    ) -> Tuple[Dict[int, List[MethodCall]], Dict[str, PageExtension]]:
        """
        Returns (step index -> method calls, page name -> entries to add).
        Applying the extensions and planning again yields the same calls and no
        further extensions.
        """
        working = {name: definition.model_copy(deep=True) for name, definition in pages.items()}
        extensions: Dict[str, PageExtension] = {}
        calls: Dict[int, List[MethodCall]] = {}

        for step in scenario.steps:
            step_calls = []
            for run in _runs(log.for_step(step.index)):
                page = run[0].page
                definition = working.setdefault(page, PageObjectDefinition(name=page))
                extension = extensions.setdefault(page, PageExtension())
                self._claim_locators(run, definition, extension)
                step_calls.extend(self._bind_run(step.text, run, definition, extension))
            calls[step.index] = step_calls

        return calls, {name: ext for name, ext in extensions.items() if not ext.is_empty()}

    def _claim_locators(self, run: List[Action], definition: PageObjectDefinition, extension: PageExtension):
        for action in run:
            if action.kind == ActionKind.NAVIGATE and definition.url is None:
                definition.url = extension.url = action.args[0]
            for locator in (action.locator, action.target):
                if locator is None:
                    continue
                if definition.locator(locator.name) is None:
                    definition.locators.append(locator)
                    extension.locators.append(locator)
                elif definition.locator(locator.name) != locator:
                    # Surfaced by ObjectLibrary.extend as a ConflictError
                    extension.locators.append(locator)

    def _bind_run(self, step_text: str, run: List[Action], definition: PageObjectDefinition,
                  extension: PageExtension) -> List[MethodCall]:
        pairs = [_template(action, definition) for action in run]
        templates = [template for template, _ in pairs]

        if len(run) > 1 and self.fold_mode != "none":
            signature = tuple(template.signature() for template in templates)
            method = definition.method_for(signature)
            if method is None and self.fold_mode == "always":
                words = to_snake_case(step_text).split("_")[:COMPOSITE_NAME_WORDS]
                method = _composite(templates, _unique_name(definition, "_".join(words) or "perform_step"))
                definition.actions.append(method)
                extension.actions.append(method)
            if method is not None:
                args = [arg for _, call_args in pairs for arg in call_args]
                return [MethodCall(run[0].page, method.name, args, method.is_verification)]

        calls = []
        for template, call_args in pairs:
            method = definition.method_for((template.signature(),))
            if method is None:
                method = ActionMethod(
                    name=_unique_name(definition, _single_method_name(template)),
                    params=list(template.params),
                    body=[template],
                )
                definition.actions.append(method)
                extension.actions.append(method)
            calls.append(MethodCall(run[0].page, method.name, call_args, method.is_verification))
        return calls
