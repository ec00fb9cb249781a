import re
from typing import Iterable, List, Tuple

STEP_MENTION_RE = re.compile(r"Step\s+(\d+)", re.IGNORECASE | re.ASCII)

# Longer digit runs are not step numbers
MAX_STEP_DIGITS = 9

# Answers listing "the steps that deal with ..." get replaced by the link list
STEPS_THAT_DEAL_RE = re.compile(r"steps? that deal", re.IGNORECASE)

EN_DASH = "–"


# =========================
# Range collapsing
# =========================
def collapse_ranges(numbers: Iterable[int]) -> List[Tuple[int, int]]:
    """Collapse step numbers into sorted, closed (start, end) runs."""
    ordered = sorted(set(numbers))
    if not ordered:
        return []

    ranges: List[Tuple[int, int]] = []
    start = end = ordered[0]
    for n in ordered[1:]:
        if n == end + 1:
            end = n
        else:
            ranges.append((start, end))
            start = end = n
    ranges.append((start, end))
    return ranges


# =========================
# Link rendering
# =========================
def render_range(start: int, end: int) -> str:
    if start == end:
        return f'<a href="#step-{start}">Step {start}</a>'
    return f'<a href="#step-{start}">Steps {start}{EN_DASH}{end}</a>'


def join_links(links: List[str]) -> str:
    if not links:
        return ""
    if len(links) == 1:
        return links[0]
    if len(links) == 2:
        return " and ".join(links)
    return ", ".join(links[:-1]) + ", and " + links[-1]


def format_steps_in_answer(answer: str) -> str:
    """
    Append grouped step links to a model answer.

    Every "Step <n>" mention (any case) is collected, deduplicated and
    collapsed into ranges, e.g. Steps 52, 53, 55 become
    '<a href="#step-52">Steps 52–53</a> and <a href="#step-55">Step 55</a>'.

    Answers without step mentions are returned unchanged. Call once per
    answer: the output contains "Step" inside its own link text.
    """
    if not answer:
        return answer

    step_nums = [
        int(m.group(1))
        for m in STEP_MENTION_RE.finditer(answer)
        if len(m.group(1).lstrip("0")) <= MAX_STEP_DIGITS
    ]
    if not step_nums:
        return answer

    links = [render_range(s, e) for s, e in collapse_ranges(step_nums)]
    links_str = join_links(links)

    # TODO: confirm with the front-end whether this override is still needed;
    # it drops the model's answer text and only fits the mail merge topic.
    if STEPS_THAT_DEAL_RE.search(answer):
        return f"Mail merge is covered in: {links_str}"

    return f"{answer}<br><br>Relevant steps: {links_str}"
