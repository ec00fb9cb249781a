import re
from typing import Any, Dict, List, Literal, Sequence, Tuple

RetrievalStrategy = Literal["keyword", "first_n"]
STRATEGIES: Tuple[str, ...] = ("keyword", "first_n")

DEFAULT_MAX_STEPS = 4
DEFAULT_SNIPPET_CHARS = 1200

# Characters of transcript kept before the first keyword hit
LEAD_IN_CHARS = 100
ELLIPSIS = "..."

# (phrase, bonus): added when both the guidance and the question contain phrase
DEFAULT_BOOSTS: Tuple[Tuple[str, int], ...] = (
    ("mail merge", 2),
    ("filter", 2),
)

STEP_NUMBER_RE = re.compile(r"step\s*(\d+)", re.IGNORECASE | re.ASCII)
WORD_SPLIT_RE = re.compile(r"\W+", re.ASCII)

StepRecord = Dict[str, Any]


def tokenize(text: str) -> List[str]:
    return [w for w in WORD_SPLIT_RE.split(text.lower()) if w]


def validate_strategy(strategy: str) -> RetrievalStrategy:
    if strategy not in STRATEGIES:
        raise ValueError(f"Unknown retrieval strategy: {strategy!r} (expected one of {', '.join(STRATEGIES)})")
    return strategy  # type: ignore[return-value]


# =========================
# Step scoring
# =========================
def step_id(step: StepRecord) -> str:
    """Step id as text; integral floats such as 17.0 read as "17"."""
    value = step.get("step")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def find_step_by_number(question: str, steps: Sequence[StepRecord]) -> Tuple[bool, List[StepRecord]]:
    """
    Direct lookup for questions like "what happens in step 17?".

    Returns (matched_pattern, result). When the question names a step that
    does not exist the result is empty but matched_pattern is still True.
    """
    m = STEP_NUMBER_RE.search(question)
    if not m:
        return False, []

    wanted = m.group(1).lstrip("0") or "0"
    for s in steps:
        if step_id(s) == wanted:
            return True, [s]
    return True, []


def score_step(
    step: StepRecord,
    words: List[str],
    ql: str,
    boosts: Sequence[Tuple[str, int]] = DEFAULT_BOOSTS,
) -> int:
    guidance = str(step.get("guidance") or "").lower()

    score = 0
    for w in words:
        if len(w) < 3:
            continue
        if w in guidance:
            score += 1

    for phrase, bonus in boosts:
        if phrase in guidance and phrase in ql:
            score += bonus

    return max(score, 0)


def score_steps(
    question: str,
    steps: Sequence[StepRecord],
    boosts: Sequence[Tuple[str, int]] = DEFAULT_BOOSTS,
) -> List[StepRecord]:
    """Score copies of every step, best first. Ties keep collection order."""
    ql = question.lower()
    words = tokenize(ql)

    scored = [{**s, "score": score_step(s, words, ql, boosts)} for s in steps]
    return sorted(scored, key=lambda x: x["score"], reverse=True)


def select_steps(
    question: str,
    steps: Sequence[StepRecord],
    max_steps: int = DEFAULT_MAX_STEPS,
    strategy: RetrievalStrategy = "keyword",
    boosts: Sequence[Tuple[str, int]] = DEFAULT_BOOSTS,
) -> List[StepRecord]:
    """
    Pick the steps most relevant to a question.

    An explicit "step N" in the question always wins and returns just that
    step (or nothing if N is unknown). Otherwise the "keyword" strategy
    returns up to max_steps scored copies with a positive score, falling back
    to the first max_steps steps when nothing matches; "first_n" always
    returns the first max_steps steps.
    """
    validate_strategy(strategy)
    if not question or not steps or max_steps <= 0:
        return []

    matched, direct = find_step_by_number(question, steps)
    if matched:
        return direct

    if strategy == "first_n":
        return list(steps[:max_steps])

    matches = [s for s in score_steps(question, steps, boosts) if s["score"] > 0][:max_steps]
    if not matches:
        return list(steps[:max_steps])
    return matches


def format_steps_context(steps: Sequence[StepRecord]) -> str:
    return "\n\n".join(f"Step {s.get('step')}: {s.get('guidance') or ''}" for s in steps)


# =========================
# Transcript excerpt
# =========================
def select_transcript_excerpt(
    question: str,
    transcript: str,
    snippet_length: int = DEFAULT_SNIPPET_CHARS,
) -> str:
    if not transcript:
        return ""

    lc_transcript = transcript.lower()
    words = [w for w in tokenize(question or "") if len(w) > 3]

    # First question word found wins, not the earliest position in the text
    idx = -1
    for w in words:
        idx = lc_transcript.find(w)
        if idx != -1:
            break
    if idx == -1:
        idx = 0

    start = max(0, idx - LEAD_IN_CHARS)
    end = min(len(transcript), idx + max(snippet_length, 0))
    excerpt = transcript[start:end]
    return excerpt + (ELLIPSIS if end < len(transcript) else "")
