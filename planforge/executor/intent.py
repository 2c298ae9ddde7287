"""
Maps step intent text onto the fixed capability set.

A step may hold several clauses ("Enter credentials and click Login"); each
clause is classified on its own. A clause that matches no capability, or more
than one, is UNRESOLVED: it is never guessed.
"""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List

from planforge.errors import AmbiguousIntentError


class Capability(str, Enum):
    NAVIGATE = "navigate"
    FILL = "fill"
    CLICK = "click"
    SELECT = "select"
    VERIFY = "verify"
    HOVER = "hover"
    DRAG = "drag"
    UPLOAD = "upload"
    DIALOG = "dialog"
    KEY = "key"
    WAIT = "wait"
    UNRESOLVED = "unresolved"


# Patterns are anchored at the start of a clause
CAPABILITY_PATTERNS = {
    Capability.NAVIGATE: r"(navigate|go|open|visit|browse|load|return)\b",
    Capability.FILL: r"(enter|type|fill|input|provide|write|populate|clear and type)\b",
    Capability.CLICK: r"(click|tap|submit|double-click|press (?:the |on )?\S+(?: \S+)? (?:button|link|icon|tab))\b",
    Capability.SELECT: r"(select|choose|pick)\b",
    Capability.VERIFY: r"(verify|check|confirm|ensure|assert|expect|validate|see|observe)\b",
    Capability.HOVER: r"(hover|mouse over|move the mouse)\b",
    Capability.DRAG: r"(drag)\b",
    Capability.UPLOAD: r"(upload|attach)\b",
    Capability.DIALOG: r"(accept|dismiss|confirm|cancel)\b.*\b(dialog|alert|popup|prompt|confirmation)\b",
    Capability.KEY: r"(press|hit)\b(?!.*\b(button|link|icon|tab)\b)",
    Capability.WAIT: r"(wait)\b",
}

LEADING_FILLER = re.compile(r"^(?:then|and|now|next|finally|user|the user|i)\s+", re.IGNORECASE)
QUOTED_RE = re.compile(r"\"[^\"]*\"|(?<!\w)'[^']*'(?!\w)|`[^`]*`")
SPLIT_RE = re.compile(r"\s*(?:,\s*(?:and\s+|then\s+)?|\s(?:and then|and|then)\s)\s*", re.IGNORECASE)

_COMPILED = {cap: re.compile(pattern, re.IGNORECASE) for cap, pattern in CAPABILITY_PATTERNS.items()}


@dataclass
class ClassifiedIntent:
    clause: str
    capability: Capability
    candidates: List[Capability] = field(default_factory=list)

    @property
    def resolved(self) -> bool:
        return self.capability != Capability.UNRESOLVED


class IntentClassifier:
    def classify(self, text: str) -> List[ClassifiedIntent]:
        return [self._classify_clause(clause) for clause in self.split_clauses(text)]

    def split_clauses(self, text: str) -> List[str]:
        """
        Splits on 'and' / 'then' / commas only where the next part starts with a
        known verb, so "Enter username and password" stays one clause.
        """
        text = text.strip().rstrip('.')
        # Separators inside quoted literals never split
        masked = QUOTED_RE.sub(lambda m: "\0" * len(m.group(0)), text)

        clauses: List[str] = []
        start = 0
        pending_sep = ""
        for match in SPLIT_RE.finditer(masked):
            part = text[start:match.start()]
            self._append_clause(clauses, part, pending_sep)
            pending_sep = text[match.start():match.end()]
            start = match.end()
        self._append_clause(clauses, text[start:], pending_sep)
        return clauses or [text]

    def _append_clause(self, clauses: List[str], part: str, separator: str):
        if not part.strip():
            return
        if clauses and not self._matches(self._strip_filler(part.strip())):
            clauses[-1] = f"{clauses[-1]}{separator}{part}"
        else:
            clauses.append(part.strip())

    @staticmethod
    def _strip_filler(clause: str) -> str:
        previous = None
        while previous != clause:
            previous = clause
            clause = LEADING_FILLER.sub("", clause)
        return clause

    def _matches(self, clause: str) -> List[Capability]:
        matches = [cap for cap, pattern in _COMPILED.items() if pattern.match(clause)]
        # 'Confirm the dialog' is a dialog action, not a verification
        if Capability.DIALOG in matches and Capability.VERIFY in matches:
            matches.remove(Capability.VERIFY)
        # 'Press the Login button' is a click, 'Press Enter' is a key press
        if Capability.CLICK in matches and Capability.KEY in matches:
            matches.remove(Capability.KEY)
        return matches

    def _classify_clause(self, clause: str) -> ClassifiedIntent:
        body = self._strip_filler(clause)
        matches = self._matches(body)
        if len(matches) == 1:
            return ClassifiedIntent(clause=body, capability=matches[0], candidates=matches)
        return ClassifiedIntent(clause=body, capability=Capability.UNRESOLVED, candidates=matches)

    def ensure_resolved(self, text: str, step_index: int = None) -> List[ClassifiedIntent]:
        intents = self.classify(text)
        for intent in intents:
            if not intent.resolved:
                if intent.candidates:
                    reason = "matches " + ", ".join(c.value for c in intent.candidates)
                else:
                    reason = "no known action"
                raise AmbiguousIntentError(intent.clause, reason, step_index=step_index)
        return intents
