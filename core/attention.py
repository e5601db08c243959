"""Assigns each conversation an attention level from its current labels."""

from typing import FrozenSet, Iterable, Optional

from .models import AttentionLevel, Conversation, ConversationKind, Message
from .questions import looks_like_question
from .timeline import (
    LABEL_AUTO_MERGE,
    LABEL_BLOCKED,
    LABEL_CLAUDE_WORKING,
    LABEL_NEEDS_HUMAN_INPUT,
    LABEL_NEEDS_REVIEW,
    LABEL_PLAN_REVIEW,
    LABEL_PLANNING,
    LABEL_READY_TO_IMPLEMENT,
    normalize_label,
)

WORKING_LABELS = frozenset({
    LABEL_CLAUDE_WORKING,
    LABEL_PLANNING,
    LABEL_PLAN_REVIEW,
    LABEL_READY_TO_IMPLEMENT,
})


def _label_names(labels: Optional[Iterable]) -> FrozenSet[str]:
    names = set()
    for label in labels or ():
        # Label objects (ours or PyGithub's) or bare names
        name = getattr(label, 'name', label)
        if isinstance(name, str):
            names.add(normalize_label(name))
    return frozenset(names)


def classify(labels: Optional[Iterable], last_bot_message: Optional[Message], conversation_kind) -> AttentionLevel:
    """Return the attention level; the first matching rule wins.

    1. blocked -> urgent
    2. needs-human-input -> urgent
    3. claude-working / planning / plan-review / ready-to-implement -> working
    4. needs-review -> review
    5. last bot message asks a question -> urgent
    6. pull request without auto-merge -> review
    7. otherwise -> none
    """
    names = _label_names(labels)

    if LABEL_BLOCKED in names:
        return AttentionLevel.URGENT
    if LABEL_NEEDS_HUMAN_INPUT in names:
        return AttentionLevel.URGENT
    if names & WORKING_LABELS:
        return AttentionLevel.WORKING
    if LABEL_NEEDS_REVIEW in names:
        return AttentionLevel.REVIEW

    if last_bot_message is not None and getattr(last_bot_message.author, 'is_bot', False):
        if looks_like_question(last_bot_message.body):
            return AttentionLevel.URGENT

    if conversation_kind == ConversationKind.PULL_REQUEST and LABEL_AUTO_MERGE not in names:
        return AttentionLevel.REVIEW

    return AttentionLevel.NONE


def attention_reason(conversation: Conversation) -> str:
    """Short explanation shown next to a conversation on the dashboard."""
    level = conversation.attention_level
    if level == AttentionLevel.URGENT:
        names = _label_names(conversation.labels)
        if LABEL_BLOCKED in names:
            return "Agent is blocked and needs your help"
        if LABEL_NEEDS_HUMAN_INPUT in names:
            return "Agent needs your input"
        return "Agent is asking you a question"
    if level == AttentionLevel.REVIEW:
        return "Pull request needs your review"
    if level == AttentionLevel.WORKING:
        return "Agent is actively working on this task"
    if level == AttentionLevel.INFO:
        return "Task completed"
    return ""
