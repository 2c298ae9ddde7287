import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple

from planforge.config import GeneratorConfig
from planforge.executor.intent import IntentClassifier
from planforge.models.page import Locator, PageObjectDefinition
from planforge.models.plan import Scenario
from planforge.naming import page_keyword, to_pascal_case

logger = logging.getLogger(__name__)

PAGE_PHRASE_RE = re.compile(r"\b((?:[\w-]+\s+){0,2}?)([\w-]+)\s+page\b", re.IGNORECASE)
DISPLAYED_RE = re.compile(
    r"^(?:verify|check|confirm|ensure|see)\s+(?:that\s+)?(?:the\s+)?([a-z][\w-]*)\s+(?:page\s+)?"
    r"(?:is|was|gets)\s+(?:displayed|shown|loaded|opened|open|visible)\b",
    re.IGNORECASE,
)
STOPWORDS = {
    "a", "an", "the", "to", "on", "of", "in", "at", "from", "into", "back", "same", "this", "that",
    "navigate", "go", "open", "visit", "browse", "load", "return", "verify", "check", "ensure", "user", "is", "and",
}
# Subjects of "X is displayed" that name an element, not a page
ELEMENT_NOUNS = {
    "alert", "banner", "button", "dialog", "error", "field", "heading", "icon", "image", "label", "link",
    "list", "logo", "menu", "message", "modal", "notification", "table", "text", "title", "toast", "form",
}
CONTROL_NOUNS = {"input", "box", "textbox", "dropdown", "select", "checkbox", "radio", "tab", "option", "area"}


class PageResolver:
    """
    Decides which page objects a scenario needs and which page each step acts on.

    Known pages come from the configuration (with aliases), the object library
    and the scenario's own declaration; explicit "<name> page" phrases add new ones.
    """

    def __init__(self, config: GeneratorConfig, known_pages: Iterable[str] = ()):
        self.config = config
        self.classifier = IntentClassifier()
        self.keywords: Dict[str, str] = {}
        for name in known_pages:
            self._register(name)
        for name, settings in config.pages.items():
            self._register(name, settings.aliases)

    def _register(self, page_name: str, aliases: Iterable[str] = ()):
        self.keywords.setdefault(page_keyword(page_name), page_name)
        for alias in aliases:
            self.keywords[alias.lower()] = page_name

    def resolve_scenario(self, scenario: Scenario) -> Tuple[List[str], Dict[int, List[str]]]:
        """
        Returns (pages in first-reference order, step index -> page of each clause).
        Clauses that name no page act on the page of the previous clause.
        """
        keywords = dict(self.keywords)
        for name in scenario.pages:
            keywords.setdefault(page_keyword(name), name)

        current = scenario.pages[0] if scenario.pages else None
        ordered: List[str] = []
        clause_pages: Dict[int, List[str]] = {}
        for step in scenario.steps:
            pages = []
            for clause in self.classifier.split_clauses(step.text):
                page = self.page_reference(clause, keywords)
                if page:
                    keywords.setdefault(page_keyword(page), page)
                    current = page
                if current is None:
                    current = self.config.default_page
                pages.append(current)
                if current not in ordered:
                    ordered.append(current)
            clause_pages[step.index] = pages

        logger.debug("Scenario '%s' uses pages %s", scenario.name, ordered)
        return ordered, clause_pages

    def page_reference(self, text: str, keywords: Optional[Dict[str, str]] = None) -> Optional[str]:
        keywords = self.keywords if keywords is None else keywords
        lowered = text.lower()

        # 1. Explicit "<name> page" phrase
        for match in PAGE_PHRASE_RE.finditer(text):
            words = [w for w in (match.group(1).split() + [match.group(2)]) if w.lower() not in STOPWORDS]
            if not words:
                continue
            for size in (2, 1):
                phrase = " ".join(words[-size:]).lower()
                if phrase in keywords:
                    return keywords[phrase]
            return to_pascal_case(" ".join(words[-2:])) + "Page"

        # 2. Known page keyword anywhere in the text, longest first ("login button" names an element)
        for keyword in sorted(keywords, key=len, reverse=True):
            for match in re.finditer(rf"\b{re.escape(keyword)}\b(?:\s+([\w-]+))?", lowered):
                if match.group(1) not in ELEMENT_NOUNS | CONTROL_NOUNS:
                    return keywords[keyword]

        # 3. "Verify dashboard is displayed"
        displayed = DISPLAYED_RE.match(text.strip())
        if displayed and displayed.group(1).lower() not in ELEMENT_NOUNS:
            return to_pascal_case(displayed.group(1)) + "Page"
        return None

    def match_locator(self, target_desc: str, definition: PageObjectDefinition) -> Optional[Locator]:
        """
        Finds the existing locator that best matches a target description.
        Heuristic keyword scoring; only confident matches are returned.
        """
        best_match = None
        max_score = 0
        target_lower = target_desc.lower().strip()
        target_key = re.sub(r"[^a-z0-9]+", "_", target_lower).strip("_")

        for locator in definition.locators:
            score = 0
            name = locator.name.lower()
            label = (locator.args.get("name") or locator.args.get("text") or locator.args.get("id") or "").lower()
            role = locator.args.get("role", "").lower()

            if target_key == name: score += 10
            elif target_key and target_key in name: score += 5
            elif name in target_key and len(name) > 1: score += 5

            if label:
                if target_lower == label: score += 8
                elif label in target_lower and len(label) > 1: score += 4

            if role and role in target_lower: score += 2

            if score > max_score and score > 0:
                max_score = score
                best_match = locator

        if max_score >= 10:
            return best_match
        return None
