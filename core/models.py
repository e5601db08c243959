"""Core data models for the conversation classification engine."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Tuple

DEFAULT_LABEL_COLOR = "888888"
UNKNOWN_LOGIN = "unknown"


class LabelEventKind(str, Enum):
    LABELED = "labeled"
    UNLABELED = "unlabeled"


class MessageKind(str, Enum):
    ISSUE_BODY = "issue_body"
    PR_BODY = "pr_body"
    COMMENT = "comment"
    REVIEW_COMMENT = "review_comment"
    SYSTEM = "system"


class ConversationKind(str, Enum):
    ISSUE = "issue"
    PULL_REQUEST = "pull_request"


class ConversationState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    MERGED = "merged"


class AgentPhase(str, Enum):
    PLAN = "plan"
    REVIEW = "review"
    IMPLEMENT = "implement"


class AttentionLevel(str, Enum):
    """Ordered urgency tag; lower rank sorts first."""
    URGENT = "urgent"
    REVIEW = "review"
    WORKING = "working"
    INFO = "info"
    NONE = "none"

    @property
    def rank(self) -> int:
        return _ATTENTION_RANKS[self]

    @property
    def needs_attention(self) -> bool:
        return self in (AttentionLevel.URGENT, AttentionLevel.REVIEW, AttentionLevel.WORKING)


_ATTENTION_RANKS = {
    AttentionLevel.URGENT: 0,
    AttentionLevel.REVIEW: 1,
    AttentionLevel.WORKING: 2,
    AttentionLevel.INFO: 3,
    AttentionLevel.NONE: 4,
}


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Coerce a datetime or ISO-8601 string into an aware UTC datetime.

    Naive datetimes are assumed to be UTC. Returns None for anything that
    cannot be interpreted as a point in time.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            return parse_timestamp(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


@dataclass(frozen=True)
class LabelEvent:
    """A single label-add or label-remove on an issue or pull request."""
    kind: LabelEventKind
    label: str
    timestamp: Optional[datetime]


@dataclass(frozen=True)
class Label:
    name: str
    color: str = DEFAULT_LABEL_COLOR


@dataclass(frozen=True)
class MessageAuthor:
    login: str = UNKNOWN_LOGIN
    avatar_url: str = ""
    is_bot: bool = False


@dataclass(frozen=True)
class Message:
    """One entry of a conversation: the opening body, a comment or a review."""
    id: int
    author: MessageAuthor
    body: str
    created_at: Optional[datetime]
    kind: MessageKind = MessageKind.COMMENT
    agent_phase: Optional[AgentPhase] = None


@dataclass(frozen=True)
class RepoRef:
    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @classmethod
    def parse(cls, full_name: str) -> "RepoRef":
        parts = (full_name or '').strip().split('/')
        if len(parts) != 2 or not all(parts):
            raise ValueError(f"Invalid repository name: {full_name!r} (expected owner/repo)")
        return cls(owner=parts[0], name=parts[1])


def conversation_id(repo: RepoRef, kind: ConversationKind, number: int) -> str:
    short_kind = 'pr' if kind == ConversationKind.PULL_REQUEST else 'issue'
    return f"{repo.owner}-{repo.name}-{short_kind}-{number}"


def parse_conversation_id(value: str) -> Tuple[RepoRef, ConversationKind, int]:
    """Split "{owner}-{repo}-{pr|issue}-{number}" back into its parts.

    The owner ends at the first hyphen; the repository name may contain
    hyphens. Owners with hyphens do not round-trip.
    """
    parts = (value or '').split('-')
    if len(parts) < 4:
        raise ValueError(f"Invalid conversation id: {value!r}")
    try:
        number = int(parts[-1])
    except ValueError as exc:
        raise ValueError(f"Invalid conversation number in id: {value!r}") from exc
    short_kind = parts[-2]
    if short_kind == 'pr':
        kind = ConversationKind.PULL_REQUEST
    elif short_kind == 'issue':
        kind = ConversationKind.ISSUE
    else:
        raise ValueError(f"Invalid conversation type in id: {value!r}")
    owner = parts[0]
    name = '-'.join(parts[1:-2])
    if not owner or not name:
        raise ValueError(f"Invalid repository in conversation id: {value!r}")
    return RepoRef(owner=owner, name=name), kind, number


@dataclass(frozen=True)
class Conversation:
    """An issue or pull request seen as a conversation with the agent."""
    repo: RepoRef
    kind: ConversationKind
    number: int
    title: str
    state: ConversationState
    labels: Tuple[Label, ...] = field(default_factory=tuple)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    body: str = ""
    author: MessageAuthor = field(default_factory=MessageAuthor)
    attention_level: AttentionLevel = AttentionLevel.NONE
    last_message: Optional[Message] = None

    @property
    def id(self) -> str:
        return conversation_id(self.repo, self.kind, self.number)

    @property
    def label_names(self) -> Tuple[str, ...]:
        return tuple(label.name for label in self.labels)

    @property
    def is_open(self) -> bool:
        return self.state == ConversationState.OPEN

    @property
    def url(self) -> str:
        segment = 'pull' if self.kind == ConversationKind.PULL_REQUEST else 'issues'
        return f"https://github.com/{self.repo.full_name}/{segment}/{self.number}"
