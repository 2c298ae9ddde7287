import pytest

from planforge.errors import AmbiguousIntentError
from planforge.executor.intent import Capability, IntentClassifier


@pytest.mark.parametrize("text, capability", [
    ("Navigate to login page", Capability.NAVIGATE),
    ("Enter valid credentials", Capability.FILL),
    ("Click the Login button", Capability.CLICK),
    ("Press the Submit button", Capability.CLICK),
    ("Press Enter", Capability.KEY),
    ("Select 'Option 1' from the dropdown", Capability.SELECT),
    ("Verify dashboard is displayed", Capability.VERIFY),
    ("Hover over the avatar", Capability.HOVER),
    ("Drag column A to column B", Capability.DRAG),
    ("Upload 'report.pdf'", Capability.UPLOAD),
    ("Accept the confirmation dialog", Capability.DIALOG),
    ("Wait for 2 seconds", Capability.WAIT),
])
def test_single_capability(text, capability):
    intents = IntentClassifier().classify(text)
    assert len(intents) == 1
    assert intents[0].capability == capability


def test_compound_step_splits_on_verbs():
    intents = IntentClassifier().classify("Enter username and password, then click the Login button")
    assert [i.capability for i in intents] == [Capability.FILL, Capability.CLICK]
    assert intents[0].clause == "Enter username and password"
    assert intents[1].clause == "click the Login button"


def test_quoted_text_never_splits():
    clauses = IntentClassifier().split_clauses("Click the 'Save and close' button")
    assert clauses == ["Click the 'Save and close' button"]


def test_unknown_verb_is_unresolved():
    intents = IntentClassifier().classify("Wave at the logo")
    assert intents[0].capability == Capability.UNRESOLVED
    assert not intents[0].resolved


def test_ensure_resolved_raises_with_step_index():
    with pytest.raises(AmbiguousIntentError) as exc:
        IntentClassifier().ensure_resolved("Wave at the logo", step_index=3)
    assert exc.value.step_index == 3
    assert exc.value.clause == "Wave at the logo"
