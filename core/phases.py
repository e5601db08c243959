"""Attributes comments to the agent phase that was active when they were posted."""

from dataclasses import replace
from typing import Iterable, List, Optional, Sequence

from .models import AgentPhase, LabelEvent, Message, MessageAuthor, MessageKind
from .timeline import (
    LABEL_PLAN_REVIEW,
    LABEL_PLANNING,
    LABEL_READY_TO_IMPLEMENT,
    active_labels_at,
)

# Comments starting with one of these were written (or explicitly triggered) by a person.
AGENT_MENTION_MARKER = "@claude"
AUTO_CONTINUE_MARKER = "[auto-continue]"
HUMAN_COMMENT_MARKERS = (AGENT_MENTION_MARKER, AUTO_CONTINUE_MARKER)

_BODY_KINDS = (MessageKind.ISSUE_BODY, MessageKind.PR_BODY)


def resolve_phase(message_timestamp, events: Optional[Iterable[LabelEvent]]) -> Optional[AgentPhase]:
    active = active_labels_at(events, message_timestamp)
    if LABEL_READY_TO_IMPLEMENT in active:
        return AgentPhase.IMPLEMENT
    if LABEL_PLAN_REVIEW in active:
        return AgentPhase.REVIEW
    if LABEL_PLANNING in active:
        return AgentPhase.PLAN
    return None


def is_human_comment(body: Optional[str]) -> bool:
    text = body.strip().lower() if isinstance(body, str) else ''
    return any(text.startswith(marker) for marker in HUMAN_COMMENT_MARKERS)


def _author_is_bot(message: Message) -> bool:
    return bool(getattr(message.author, 'is_bot', False))


def annotate_message(message: Message, events: Optional[Iterable[LabelEvent]]) -> Message:
    """Return a copy of ``message`` with its agent phase filled in.

    Bot comments are tagged with the phase active when they were posted.
    Other comments without a human marker are promoted to bot comments when
    a phase was active, since some automation posts under a user identity.
    """
    if message.kind in _BODY_KINDS:
        return message

    if _author_is_bot(message):
        return replace(message, agent_phase=resolve_phase(message.created_at, events))

    if is_human_comment(message.body):
        return message

    phase = resolve_phase(message.created_at, events)
    if phase is None:
        return message
    author = message.author or MessageAuthor()
    return replace(message, author=replace(author, is_bot=True), agent_phase=phase)


def annotate_messages(messages: Optional[Iterable[Message]], events: Optional[Iterable[LabelEvent]]) -> List[Message]:
    event_list = list(events or ())
    return [annotate_message(message, event_list) for message in messages or ()]


def last_bot_message(messages: Optional[Sequence[Message]]) -> Optional[Message]:
    """Most recent bot-authored message, ignoring empty bodies.

    ``messages`` is expected in chronological order, as the loader returns them.
    """
    for message in reversed(list(messages or ())):
        if _author_is_bot(message) and (message.body or '').strip():
            return message
    return None
