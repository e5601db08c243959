from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Sequence, Any, Optional, List, Dict

from core.models import Conversation, Message
from dashboard.attention_board import AttentionBoard

PHASE_BADGES = {
    "plan": "Plan Agent",
    "review": "Review Agent",
    "implement": "Implement Agent",
}


def _stringify(cell: Any) -> str:
    if cell is None:
        return ""
    value = getattr(cell, 'value', cell)
    return str(value)


def _build_border(widths: List[int], left: str, middle: str, right: str) -> str:
    segments = ["─" * (width + 2) for width in widths]
    return f"{left}{middle.join(segments)}{right}"


def _render_row(cells: Sequence[str], widths: List[int]) -> str:
    padded = [cells[idx].ljust(widths[idx]) for idx in range(len(widths))]
    return "│ " + " │ ".join(padded) + " │"


def format_table(
    headers: Sequence[str],
    rows: Iterable[Sequence[Any]],
    *,
    empty_message: str = "(none)",
) -> str:
    """Render a simple box-drawn table as a string."""

    header_cells: List[str] = [_stringify(cell) for cell in headers]
    body_rows: List[List[str]] = [[_stringify(cell) for cell in row] for row in rows]

    column_count = len(header_cells)
    if column_count == 0:
        raise ValueError("Table must contain at least one header column")

    for idx, row in enumerate(body_rows):
        if len(row) != column_count:
            raise ValueError(
                f"Row {idx} has {len(row)} cells but expected {column_count}"
            )

    if not body_rows:
        body_rows = [[empty_message] + [""] * (column_count - 1)]

    widths = [len(cell) for cell in header_cells]
    for row in body_rows:
        for col, cell in enumerate(row):
            widths[col] = max(widths[col], len(cell))

    lines = [
        _build_border(widths, "┌", "┬", "┐"),
        _render_row(header_cells, widths),
        _build_border(widths, "├", "┼", "┤"),
    ]
    lines.extend(_render_row(row, widths) for row in body_rows)
    lines.append(_build_border(widths, "└", "┴", "┘"))
    return "\n".join(lines)


def shorten_text(text: Optional[str], limit: int = 80) -> str:
    if not text:
        return ""
    single_line = " ".join(text.split())
    if len(single_line) <= limit:
        return single_line
    return single_line[: max(limit - 3, 0)] + "..."


def format_relative_time(when: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Compact age such as "now", "5m", "3h", "2d" or a date for older items."""
    if when is None:
        return ""
    now = now or datetime.now(timezone.utc)
    seconds = int((now - when).total_seconds())
    if seconds < 60:
        return "now"
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        return f"{seconds // 3600}h"
    if seconds < 7 * 86400:
        return f"{seconds // 86400}d"
    return when.strftime("%Y-%m-%d")


def author_badge(message: Message) -> str:
    if not message.author.is_bot:
        return message.author.login
    phase = message.agent_phase.value if message.agent_phase else None
    return PHASE_BADGES.get(phase, "Agent")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def message_to_dict(message: Message) -> Dict[str, Any]:
    return {
        "id": message.id,
        "author": {
            "login": message.author.login,
            "avatarUrl": message.author.avatar_url,
            "isBot": message.author.is_bot,
        },
        "body": message.body,
        "createdAt": _iso(message.created_at),
        "type": message.kind.value,
        "agentType": message.agent_phase.value if message.agent_phase else None,
    }


def conversation_to_dict(conversation: Conversation) -> Dict[str, Any]:
    return {
        "id": conversation.id,
        "repo": {
            "owner": conversation.repo.owner,
            "name": conversation.repo.name,
            "fullName": conversation.repo.full_name,
        },
        "type": conversation.kind.value,
        "number": conversation.number,
        "title": conversation.title,
        "state": conversation.state.value,
        "labels": [{"name": label.name, "color": label.color} for label in conversation.labels],
        "createdAt": _iso(conversation.created_at),
        "updatedAt": _iso(conversation.updated_at),
        "body": conversation.body,
        "author": {
            "login": conversation.author.login,
            "avatarUrl": conversation.author.avatar_url,
            "isBot": conversation.author.is_bot,
        },
        "lastMessage": message_to_dict(conversation.last_message) if conversation.last_message else None,
        "attentionLevel": conversation.attention_level.value,
        "url": conversation.url,
    }


def board_to_dict(board: AttentionBoard) -> Dict[str, Any]:
    return {
        "attentionItems": [
            {
                "conversation": conversation_to_dict(item.conversation),
                "reason": item.reason,
                "priority": item.level.rank + 1,
                "timestamp": _iso(item.conversation.updated_at),
            }
            for item in board.attention_items
        ],
        "recentActivity": [conversation_to_dict(c) for c in board.recent_activity],
        "levelCounts": dict(board.level_counts),
        "hiddenCompleted": board.hidden_completed,
    }
