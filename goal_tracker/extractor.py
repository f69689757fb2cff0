# ABOUTME: Pure plan extractor: recovers goal title, description and ordered steps from assistant text.
# ABOUTME: Never fails; falls back to "New Goal" and a single default step when nothing is recognised.

import re

from core.schemas import Plan, PlanStep

DEFAULT_GOAL_TITLE = "New Goal"
DEFAULT_STEP_TITLE = "Start working on your goal"

# Title/description substrings only filter steps when longer than this.
MIN_CONTAINED_LABEL_LENGTH = 5

# Labels may be wrapped in markdown emphasis: "Goal:", "**Goal**:", "**Goal:**".
_GOAL_RE = re.compile(r"(?:\*\*)?Goal(?:\*\*)?:(?:\*\*)?[ \t]*([^\n]+)", re.IGNORECASE)
_DESCRIPTION_RE = re.compile(
    r"(?:\*\*)?Description(?:\*\*)?:(?:\*\*)?[ \t]*(.+?)"
    r"(?=\n[ \t]*(?:\*\*)?(?:Daily\s+)?Steps(?:\*\*)?:|\Z)",
    re.IGNORECASE | re.DOTALL,
)
_STEPS_RE = re.compile(
    r"(?:\*\*)?(?:Daily\s+)?Steps(?:\*\*)?:(?:\*\*)?[ \t]*\n(.*)",
    re.IGNORECASE | re.DOTALL,
)
_NUMBERED_RE = re.compile(r"^\d+\.\s*(.+)")
_BULLETED_RE = re.compile(r"^[-*]\s*(.+)")
_HORIZONTAL_RULE_RE = re.compile(r"^(?:[-*_][ \t]*){3,}$")
_EMPHASIS_RE = re.compile(r"\*\*")
_LABEL_LINE_RE = re.compile(r"^(?:\*\*)?(?:Goal|Description)(?:\*\*)?:", re.IGNORECASE)

_PLAN_KEYWORD_RE = re.compile(r"Goal|Plan|Steps|Daily\s+Steps", re.IGNORECASE)
_LIST_MARKER_RE = re.compile(r"\d+\.|[-*]")
_GOAL_LINE_RE = re.compile(r"Goal:\s*.+", re.IGNORECASE)


def _clean_label_value(value: str) -> str:
    """Trim whitespace and stray emphasis markers around a label's value."""
    return value.strip().strip("*").strip()


def _find_goal_title(text: str) -> str:
    match = _GOAL_RE.search(text)
    if match:
        title = _clean_label_value(match.group(1))
        if title:
            return title
    return DEFAULT_GOAL_TITLE


def _find_description(text: str) -> str | None:
    match = _DESCRIPTION_RE.search(text)
    if not match:
        return None
    description = _clean_label_value(match.group(1))
    return description or None


def _step_block(text: str) -> str:
    """Text after the Steps / Daily Steps label, or the whole text when there is no label."""
    match = _STEPS_RE.search(text)
    return match.group(1) if match else text


def _list_item(line: str) -> str | None:
    """Return the text of a numbered or bulleted list line with its marker and bold markers removed."""
    line = line.strip()
    if _HORIZONTAL_RULE_RE.match(line) or _LABEL_LINE_RE.match(line):
        return None
    match = _NUMBERED_RE.match(line) or _BULLETED_RE.match(line)
    if not match:
        return None
    # "**Day 1:** Run" matches as a "*" bullet; dropping "**" pairs leaves "Day 1: Run".
    return _clean_label_value(_EMPHASIS_RE.sub("", match.group(1))) or None


def _is_echo_of(step_lower: str, label_lower: str) -> bool:
    """True when the step repeats a goal title or description instead of being a step."""
    if not label_lower:
        return False
    if step_lower == label_lower:
        return True
    return len(label_lower) > MIN_CONTAINED_LABEL_LENGTH and label_lower in step_lower


def extract_plan(text: str) -> Plan:
    """Parse free-form assistant text into a Plan. Deterministic and side-effect free."""
    if not isinstance(text, str):
        text = ""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    goal_title = _find_goal_title(text)
    description = _find_description(text)

    goal_lower = goal_title.lower()
    description_lower = (description or "").lower()
    titles: list[str] = []
    for line in _step_block(text).split("\n"):
        item = _list_item(line)
        if not item:
            continue
        item_lower = item.lower()
        if _is_echo_of(item_lower, goal_lower) or _is_echo_of(item_lower, description_lower):
            continue
        titles.append(item)

    if not titles:
        titles = [DEFAULT_STEP_TITLE]
    return Plan(
        goal_title=goal_title,
        description=description,
        steps=[PlanStep(title=t) for t in titles],
    )


def has_plan_content(text: str) -> bool:
    """Quick check that a message looks like a plan before offering to extract it."""
    if not isinstance(text, str):
        return False
    if not _PLAN_KEYWORD_RE.search(text):
        return False
    return bool(_LIST_MARKER_RE.search(text) or _GOAL_LINE_RE.search(text))
