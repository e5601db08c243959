"""Conversation classification engine."""

from .models import (
    AgentPhase,
    AttentionLevel,
    Conversation,
    ConversationKind,
    ConversationState,
    Label,
    LabelEvent,
    LabelEventKind,
    Message,
    MessageAuthor,
    MessageKind,
    RepoRef,
    conversation_id,
    parse_conversation_id,
    parse_timestamp,
)
from .timeline import WORKFLOW_LABELS, active_labels_at, sort_events
from .phases import annotate_message, annotate_messages, is_human_comment, last_bot_message, resolve_phase
from .attention import attention_reason, classify
from .questions import looks_like_question

__all__ = [
    'AgentPhase',
    'AttentionLevel',
    'Conversation',
    'ConversationKind',
    'ConversationState',
    'Label',
    'LabelEvent',
    'LabelEventKind',
    'Message',
    'MessageAuthor',
    'MessageKind',
    'RepoRef',
    'conversation_id',
    'parse_conversation_id',
    'parse_timestamp',
    'WORKFLOW_LABELS',
    'active_labels_at',
    'sort_events',
    'annotate_message',
    'annotate_messages',
    'is_human_comment',
    'last_bot_message',
    'resolve_phase',
    'attention_reason',
    'classify',
    'looks_like_question',
]
