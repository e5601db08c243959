"""Replays label-change events to find which workflow labels were active at a point in time."""

from functools import reduce
from typing import FrozenSet, Iterable, List, Optional

from .models import LabelEvent, LabelEventKind, parse_timestamp

# Labels with special meaning to the dashboard; everything else is ignored on replay.
LABEL_PLANNING = "planning"
LABEL_PLAN_REVIEW = "plan-review"
LABEL_READY_TO_IMPLEMENT = "ready-to-implement"
LABEL_CLAUDE_WORKING = "claude-working"
LABEL_NEEDS_REVIEW = "needs-review"
LABEL_BLOCKED = "blocked"
LABEL_NEEDS_HUMAN_INPUT = "needs-human-input"
LABEL_AUTO_MERGE = "auto-merge"

WORKFLOW_LABELS = frozenset({
    LABEL_PLANNING,
    LABEL_PLAN_REVIEW,
    LABEL_READY_TO_IMPLEMENT,
    LABEL_CLAUDE_WORKING,
    LABEL_NEEDS_REVIEW,
    LABEL_BLOCKED,
    LABEL_NEEDS_HUMAN_INPUT,
    LABEL_AUTO_MERGE,
})


def normalize_label(name: Optional[str]) -> str:
    return name.strip().lower() if isinstance(name, str) else ''


def sort_events(events: Optional[Iterable[LabelEvent]]) -> List[LabelEvent]:
    """Stable sort by timestamp; events sharing a timestamp keep their emission order.

    Events without a usable timestamp are dropped.
    """
    timed = []
    for event in events or ():
        timestamp = parse_timestamp(getattr(event, 'timestamp', None))
        if timestamp is not None:
            timed.append((timestamp, event))
    timed.sort(key=lambda item: item[0])
    return [event for _, event in timed]


def _apply(active: FrozenSet[str], event: LabelEvent) -> FrozenSet[str]:
    name = normalize_label(getattr(event, 'label', None))
    kind = getattr(event, 'kind', None)
    if name not in WORKFLOW_LABELS:
        return active
    if kind == LabelEventKind.LABELED:
        return active | {name}
    if kind == LabelEventKind.UNLABELED:
        return active - {name}
    return active


def active_labels_at(events: Optional[Iterable[LabelEvent]], instant) -> FrozenSet[str]:
    """Return the workflow labels active at or before ``instant`` (lower-cased).

    Recomputed on every call. A missing or unparseable instant yields no labels.
    """
    cutoff = parse_timestamp(instant)
    if cutoff is None:
        return frozenset()
    replayed = [event for event in sort_events(events) if parse_timestamp(event.timestamp) <= cutoff]
    return reduce(_apply, replayed, frozenset())
