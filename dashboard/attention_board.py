"""Ranks classified conversations for the dashboard without deciding any action."""
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List

from core.attention import attention_reason
from core.models import AttentionLevel, Conversation

RECENT_ACTIVITY_LIMIT = 10

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)

logger = logging.getLogger('taskboard.board')


@dataclass
class AttentionItem:
    """A conversation that needs the human, with the reason shown for it."""
    conversation: Conversation
    reason: str

    @property
    def level(self) -> AttentionLevel:
        return self.conversation.attention_level


@dataclass
class AttentionBoard:
    attention_items: List[AttentionItem] = field(default_factory=list)
    recent_activity: List[Conversation] = field(default_factory=list)
    level_counts: Dict[str, int] = field(default_factory=dict)
    hidden_completed: int = 0


def _updated(conversation: Conversation) -> datetime:
    return conversation.updated_at or _OLDEST


def build_attention_board(
    conversations: Iterable[Conversation],
    show_completed: bool = False,
    recent_limit: int = RECENT_ACTIVITY_LIMIT,
) -> AttentionBoard:
    """Group conversations into "needs attention" and recent activity.

    Attention items are ordered by urgency, then most recently updated.
    Closed and merged conversations are hidden unless ``show_completed``.
    """
    all_conversations = list(conversations)
    visible = [c for c in all_conversations if show_completed or c.is_open]
    by_recency = sorted(visible, key=_updated, reverse=True)

    # stable sort: equal ranks keep recency order
    needing = [c for c in by_recency if c.attention_level.needs_attention]
    needing.sort(key=lambda c: c.attention_level.rank)

    counts = Counter(c.attention_level.value for c in visible)
    board = AttentionBoard(
        attention_items=[AttentionItem(conversation=c, reason=attention_reason(c)) for c in needing],
        recent_activity=by_recency[:max(recent_limit, 0)],
        level_counts={level.value: counts.get(level.value, 0) for level in AttentionLevel},
        hidden_completed=len(all_conversations) - len(visible),
    )
    logger.debug(
        f"Attention board: {len(board.attention_items)} need attention, "
        f"{board.hidden_completed} completed hidden"
    )
    return board
