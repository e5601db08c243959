"""Dashboard services built on top of the classification engine."""

from .attention_board import AttentionBoard, AttentionItem, build_attention_board
from .conversation_loader import ConversationLoader, TrackedRepo

__all__ = [
    'AttentionBoard',
    'AttentionItem',
    'build_attention_board',
    'ConversationLoader',
    'TrackedRepo',
]
