"""
Prompt auto-detection rules.

Page interactions arrive as DocumentEvent values; a declarative rule set
decides which of them are AI prompt submissions and how to tag them.
"""

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Tuple

from sap_server.core.records import SourceTag

SUBMIT = "submit"
CLICK = "click"
INPUT = "input"


@dataclass(frozen=True)
class DocumentEvent:
    """A page interaction, reduced to what the rules need.

    Attributes:
        kind: "submit", "click" or "input"
        tag: Upper-case tag name of the event target (e.g. "BUTTON")
        label: Visible text of the target, used for button keywords
        text: Prompt text from the target or its form's first text field
        in_form: Whether the target sits inside a form
        target_id: Identifies the target for per-field debouncing
    """
    kind: str
    tag: str = ""
    label: str = ""
    text: str = ""
    in_form: bool = False
    target_id: str = ""


@dataclass(frozen=True)
class TrackingRule:
    """Matches one kind of page event to a source tag."""
    source: SourceTag
    kind: str
    tags: FrozenSet[str] = frozenset()
    keywords: Tuple[str, ...] = ()
    min_length: int = 10
    requires_form: bool = False
    debounce: bool = False

    def matches(self, event: DocumentEvent) -> bool:
        if event.kind != self.kind:
            return False
        if self.tags and event.tag.upper() not in self.tags:
            return False
        if self.keywords:
            label = event.label.lower()
            if not any(word in label for word in self.keywords):
                return False
        if self.requires_form and not event.in_form:
            return False
        # Text must be strictly longer than the minimum.
        return len(event.text or "") > self.min_length


DEFAULT_RULES: Tuple[TrackingRule, ...] = (
    TrackingRule(source=SourceTag.FORM_SUBMISSION, kind=SUBMIT, min_length=10),
    TrackingRule(
        source=SourceTag.BUTTON_CLICK,
        kind=CLICK,
        tags=frozenset({"BUTTON"}),
        keywords=("generate", "ask", "send", "submit"),
        min_length=10,
        requires_form=True,
    ),
    TrackingRule(
        source=SourceTag.INPUT_CHANGE,
        kind=INPUT,
        tags=frozenset({"TEXTAREA", "INPUT"}),
        min_length=50,
        debounce=True,
    ),
)


def match_rule(event: DocumentEvent, rules: Iterable[TrackingRule] = DEFAULT_RULES) -> Optional[TrackingRule]:
    """Return the first rule matching the event, if any."""
    for rule in rules:
        if rule.matches(event):
            return rule
    return None
