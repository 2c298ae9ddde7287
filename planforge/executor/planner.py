"""
Step planners turn one classified clause into concrete actions.

The rule-based planner reads targets, quoted literals and URLs out of the
clause text and prefers locators the page already has; anything it cannot
pin down raises AmbiguousIntentError instead of guessing.
"""
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from planforge.config import GeneratorConfig
from planforge.errors import AmbiguousIntentError
from planforge.executor.intent import Capability, ClassifiedIntent
from planforge.models.actions import ActionKind
from planforge.models.page import Locator, PageObjectDefinition
from planforge.naming import page_keyword, to_snake_case
from planforge.resolver.pages import PageResolver

logger = logging.getLogger(__name__)

QUOTED_RE = re.compile(r"\"([^\"]*)\"|(?<!\w)'([^']*)'(?!\w)|`([^`]*)`")
URL_RE = re.compile(r"https?://[^\s'\"`]+")
ARTICLES_RE = re.compile(r"^(?:the|a|an|on|to|into|in|over|at|for)\s+", re.IGNORECASE)

ROLE_NOUNS = {
    "button": "button", "btn": "button", "icon": "button", "link": "link", "tab": "tab",
    "checkbox": "checkbox", "radio": "radio", "heading": "heading", "header": "heading",
    "menuitem": "menuitem", "switch": "switch",
}
FIELD_NOUNS = {"field", "input", "box", "textbox", "textarea", "area", "dropdown", "select", "combobox", "picker"}
CREDENTIAL_FIELDS = ("username", "password")
KEY_NAMES = {
    "enter": "Enter", "return": "Enter", "tab": "Tab", "escape": "Escape", "esc": "Escape",
    "space": "Space", "backspace": "Backspace", "delete": "Delete", "arrowdown": "ArrowDown",
    "arrowup": "ArrowUp", "arrowleft": "ArrowLeft", "arrowright": "ArrowRight",
    "down": "ArrowDown", "up": "ArrowUp", "left": "ArrowLeft", "right": "ArrowRight",
}


@dataclass
class PlannedAction:
    kind: ActionKind
    page: str
    clause: str
    locator: Optional[Locator] = None
    target: Optional[Locator] = None
    args: List[str] = field(default_factory=list)


class StepPlanner(ABC):
    @abstractmethod
    def plan(self, intent: ClassifiedIntent, page: str, definition: PageObjectDefinition,
             step_index: Optional[int] = None) -> List[PlannedAction]:
        pass


def quoted_literals(text: str) -> List[str]:
    return [next(g for g in match.groups() if g is not None) for match in QUOTED_RE.finditer(text)]


def strip_quoted(text: str) -> str:
    return " ".join(QUOTED_RE.sub(" ", text).split())


def _clean_phrase(text: str) -> str:
    text = text.strip(" .,:;")
    previous = None
    while previous != text:
        previous = text
        text = ARTICLES_RE.sub("", text)
    return text.strip()


class RuleStepPlanner(StepPlanner):
    def __init__(self, config: GeneratorConfig, resolver: PageResolver):
        self.config = config
        self.resolver = resolver

    def plan(self, intent: ClassifiedIntent, page: str, definition: PageObjectDefinition,
             step_index: Optional[int] = None) -> List[PlannedAction]:
        handler = {
            Capability.NAVIGATE: self._navigate,
            Capability.FILL: self._fill,
            Capability.CLICK: self._click,
            Capability.SELECT: self._select,
            Capability.VERIFY: self._verify,
            Capability.HOVER: self._hover,
            Capability.DRAG: self._drag,
            Capability.UPLOAD: self._upload,
            Capability.DIALOG: self._dialog,
            Capability.KEY: self._key,
            Capability.WAIT: self._wait,
        }.get(intent.capability)
        if handler is None:
            raise AmbiguousIntentError(intent.clause, "no known action", step_index=step_index)

        try:
            actions = handler(intent.clause, page, definition)
        except AmbiguousIntentError as e:
            e.step_index = step_index
            raise
        logger.debug("Planned %s -> %s", intent.clause, [a.kind.value for a in actions])
        return actions

    def _fail(self, clause: str, reason: str):
        raise AmbiguousIntentError(clause, reason)

    # Locators

    def locator_for(self, phrase: str, definition: PageObjectDefinition, default: str = "text",
                    literal: Optional[str] = None) -> Locator:
        """
        Builds (or reuses) a locator for a target phrase such as 'login button',
        'Username field' or a quoted literal.
        """
        phrase = _clean_phrase(strip_quoted(phrase)) if phrase else ""
        if not phrase and not literal:
            raise AmbiguousIntentError(phrase, "no target element")

        if phrase:
            existing = self.resolver.match_locator(phrase, definition)
            if existing:
                return existing

        words = phrase.split()
        noun = words[-1].lower() if words else ""
        label_words = words[:-1] if noun in ROLE_NOUNS or noun in FIELD_NOUNS else words
        label = literal or " ".join(label_words).strip()
        if not label:
            label = phrase
        if literal and not label_words:
            name = to_snake_case(f"{literal} {phrase}")
        else:
            name = to_snake_case(phrase or literal)

        current = definition.locator(name)
        if current:
            return current

        if noun in ROLE_NOUNS and label:
            display = label if literal else label[:1].upper() + label[1:]
            return Locator(name=name, strategy="role", args={"role": ROLE_NOUNS[noun], "name": display})
        if noun in FIELD_NOUNS or default == "label":
            display = label if literal else label[:1].upper() + label[1:]
            return Locator(name=name, strategy="label", args={"text": display})
        if default == "testid" and not literal:
            return Locator(name=name, strategy="testid", args={"id": name.replace("_", "-")})
        return Locator(name=name, strategy="text", args={"text": label})

    # Handlers

    def _navigate(self, clause: str, page: str, definition: PageObjectDefinition) -> List[PlannedAction]:
        urls = URL_RE.findall(clause)
        url = urls[0] if urls else (self.config.page_url(page) or definition.url)
        if not url:
            literals = [v for v in quoted_literals(clause) if v.startswith("/")]
            if literals and self.config.base_url:
                url = self.config.absolute_url(literals[0])
        if not url:
            url = self.config.base_url
        if not url:
            self._fail(clause, f"no URL known for {page}")
        return [PlannedAction(ActionKind.NAVIGATE, page, clause, args=[url])]

    def _test_value(self, key: str, qualifier: str = "") -> Optional[str]:
        data = self.config.test_data
        if qualifier and f"{qualifier}_{key}" in data:
            return data[f"{qualifier}_{key}"]
        return data.get(key)

    def _fill(self, clause: str, page: str, definition: PageObjectDefinition) -> List[PlannedAction]:
        literals = quoted_literals(clause)
        body = strip_quoted(clause)
        body = re.sub(r"^(enter|type|fill(?: in)?|input|provide|write|populate)\s+", "", body, flags=re.IGNORECASE)

        # "Enter valid credentials" / "Enter invalid credentials"
        creds = re.match(r"^(?:the\s+)?(?:(\w+)\s+)?(?:login\s+)?credentials\b", body, re.IGNORECASE)
        if creds:
            qualifier = (creds.group(1) or "").lower()
            qualifier = "" if qualifier in ("the", "login", "user") else qualifier
            actions = []
            for index, field_name in enumerate(CREDENTIAL_FIELDS):
                value = literals[index] if index < len(literals) else self._test_value(field_name, qualifier)
                if value is None:
                    self._fail(clause, f"no test data for '{field_name}'")
                locator = self.locator_for(f"{field_name} field", definition, default="label")
                actions.append(PlannedAction(ActionKind.FILL, page, clause, locator=locator, args=[value]))
            return actions

        # "Fill the Email field with 'x'"
        with_match = re.match(r"^(.+?)\s+with\s*$", body, re.IGNORECASE)
        # "Enter 'x' into the Email field"
        into_match = re.match(r"^(?:into|in|on)\s+(.+)$", body, re.IGNORECASE)
        if with_match:
            target = with_match.group(1)
        elif into_match:
            target = into_match.group(1)
        else:
            target = body

        # "Enter username and password" fills several fields
        targets = [t for t in re.split(r"\s+and\s+|,\s*", target) if t.strip()]
        if not targets:
            self._fail(clause, "no field to fill")
        actions = []
        for index, phrase in enumerate(targets):
            phrase = _clean_phrase(phrase)
            key = to_snake_case(" ".join(w for w in phrase.split() if w.lower() not in FIELD_NOUNS))
            value = literals[index] if index < len(literals) else self._test_value(key)
            if value is None:
                self._fail(clause, f"no value for '{phrase}'")
            locator = self.locator_for(phrase, definition, default="label")
            actions.append(PlannedAction(ActionKind.FILL, page, clause, locator=locator, args=[value]))
        return actions

    def _click(self, clause: str, page: str, definition: PageObjectDefinition) -> List[PlannedAction]:
        literals = quoted_literals(clause)
        body = re.sub(r"^(double-click|click|tap|submit|press)\s+(?:on\s+)?", "", clause, flags=re.IGNORECASE)
        phrase = strip_quoted(body)
        if literals and _clean_phrase(phrase).lower() in ("", *ROLE_NOUNS):
            # "Click 'Sign in'" / "Click the 'Sign in' link"
            noun = _clean_phrase(phrase).lower() or "button"
            locator = self.locator_for(f"{literals[0]} {noun}", definition, literal=literals[0])
        else:
            locator = self.locator_for(phrase or body, definition, default="text")
        return [PlannedAction(ActionKind.CLICK, page, clause, locator=locator)]

    def _select(self, clause: str, page: str, definition: PageObjectDefinition) -> List[PlannedAction]:
        literals = quoted_literals(clause)
        match = re.search(r"\b(?:from|in|on)\s+(.+)$", strip_quoted(clause), re.IGNORECASE)
        if not literals:
            self._fail(clause, "no option to select")
        if not match:
            self._fail(clause, "no dropdown named")
        locator = self.locator_for(match.group(1), definition, default="label")
        return [PlannedAction(ActionKind.SELECT_OPTION, page, clause, locator=locator, args=[literals[0]])]

    def _hover(self, clause: str, page: str, definition: PageObjectDefinition) -> List[PlannedAction]:
        body = re.sub(r"^(hover|mouse over|move the mouse)\s+(?:over\s+|on\s+|to\s+)?", "", clause, flags=re.IGNORECASE)
        literals = quoted_literals(body)
        locator = self.locator_for(body, definition, literal=literals[0] if literals else None)
        return [PlannedAction(ActionKind.HOVER, page, clause, locator=locator)]

    def _drag(self, clause: str, page: str, definition: PageObjectDefinition) -> List[PlannedAction]:
        match = re.match(r"^drag\s+(.+?)\s+(?:to|onto|into|over)\s+(.+)$", clause, re.IGNORECASE)
        if not match:
            self._fail(clause, "drag needs a source and a target")
        source = self.locator_for(match.group(1), definition)
        target = self.locator_for(match.group(2), definition)
        return [PlannedAction(ActionKind.DRAG, page, clause, locator=source, target=target)]

    def _upload(self, clause: str, page: str, definition: PageObjectDefinition) -> List[PlannedAction]:
        literals = quoted_literals(clause)
        match = re.search(r"\b(?:to|into|using|via|in|with)\s+(.+)$", strip_quoted(clause), re.IGNORECASE)
        if not literals:
            self._fail(clause, "no file to upload")
        phrase = match.group(1) if match else "file input"
        locator = self.locator_for(phrase, definition, default="label")
        return [PlannedAction(ActionKind.UPLOAD, page, clause, locator=locator, args=literals[:1])]

    def _dialog(self, clause: str, page: str, definition: PageObjectDefinition) -> List[PlannedAction]:
        verb = clause.split()[0].lower()
        action = "accept" if verb in ("accept", "confirm") else "dismiss"
        return [PlannedAction(ActionKind.HANDLE_DIALOG, page, clause, args=[action])]

    def _key(self, clause: str, page: str, definition: PageObjectDefinition) -> List[PlannedAction]:
        literals = quoted_literals(clause)
        body = strip_quoted(clause)
        match = re.match(r"^(?:press|hit)\s+(?:the\s+)?([\w+-]+)?(?:\s+key)?(?:\s+(?:in|on)\s+(.+))?$", body, re.IGNORECASE)
        key = literals[0] if literals else (match.group(1) if match and match.group(1) else None)
        if not key:
            self._fail(clause, "no key named")
        key = KEY_NAMES.get(key.lower(), key)
        locator = self.locator_for(match.group(2), definition, default="label") if match and match.group(2) else None
        return [PlannedAction(ActionKind.PRESS_KEY, page, clause, locator=locator, args=[key])]

    def _wait(self, clause: str, page: str, definition: PageObjectDefinition) -> List[PlannedAction]:
        duration = re.search(r"(\d+(?:\.\d+)?)\s*(ms|milliseconds?|s|secs?|seconds?)\b", clause, re.IGNORECASE)
        if duration:
            amount = float(duration.group(1))
            if not duration.group(2).lower().startswith("m"):
                amount *= 1000
            return [PlannedAction(ActionKind.WAIT, page, clause, args=[str(int(amount))])]

        match = re.match(r"^wait\s+(?:for|until)\s+(.+?)(?:\s+to\s+(?:appear|load|be visible|show))?$", clause, re.IGNORECASE)
        if not match:
            self._fail(clause, "no duration or element to wait for")
        literals = quoted_literals(match.group(1))
        locator = self.locator_for(match.group(1), definition, literal=literals[0] if literals else None)
        return [PlannedAction(ActionKind.WAIT, page, clause, locator=locator)]

    def _verify(self, clause: str, page: str, definition: PageObjectDefinition) -> List[PlannedAction]:
        literals = quoted_literals(clause)
        body = re.sub(r"^(verify|check|confirm|ensure|assert|expect|validate|see|observe)\s+(?:that\s+)?", "", clause, flags=re.IGNORECASE)
        plain = strip_quoted(body)

        # "the Email field has value 'x'"
        value = re.match(r"^(.+?)\s+(?:has|have)\s+(?:the\s+)?value\b", plain, re.IGNORECASE)
        if value and literals:
            locator = self.locator_for(value.group(1), definition, default="label")
            return [PlannedAction(ActionKind.VERIFY_VALUE, page, clause, locator=locator, args=[literals[0]])]

        # "the greeting shows 'Hello'"
        text = re.match(r"^(.+?)\s+(?:shows|contains|displays|reads|says|has text|has the text|includes)\s*$", plain, re.IGNORECASE)
        if text and literals:
            locator = self.locator_for(text.group(1), definition, default="testid")
            return [PlannedAction(ActionKind.VERIFY_TEXT, page, clause, locator=locator, args=[literals[0]])]

        # "'Welcome back' is displayed" / "the text 'Welcome' appears"
        if literals and re.match(r"^(?:the\s+)?(?:text|message|label)?\s*(?:is|are|appears|gets)?\b", plain, re.IGNORECASE) \
                and not re.search(r"\b(" + "|".join(ROLE_NOUNS) + r")\b", plain, re.IGNORECASE):
            literal = literals[0]
            locator = self.locator_for(literal, definition, literal=literal)
            return [PlannedAction(ActionKind.VERIFY_VISIBLE, page, clause, locator=locator)]

        subject = re.sub(
            r"\s+(?:is|are|was|gets)\s+(?:displayed|visible|shown|present|loaded|opened|open|rendered)\b.*$|\s+(?:appears?|loads?)\b.*$",
            "", plain, flags=re.IGNORECASE,
        )
        subject = _clean_phrase(subject)
        if not subject:
            self._fail(clause, "nothing to verify")

        # Page-level check: "dashboard is displayed" -> the page heading
        if re.sub(r"\s+page$", "", subject.lower()) == page_keyword(page):
            heading = page_keyword(page)
            locator = self.locator_for(f"{heading} heading", definition, literal=heading.title())
            return [PlannedAction(ActionKind.VERIFY_VISIBLE, page, clause, locator=locator)]

        locator = self.locator_for(subject, definition, default="testid",
                                   literal=literals[0] if literals else None)
        return [PlannedAction(ActionKind.VERIFY_VISIBLE, page, clause, locator=locator)]
