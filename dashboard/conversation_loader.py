"""Loads issues and pull requests from GitHub and turns them into conversations."""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

import requests
from github import Github, GithubException

from core.attention import classify
from core.models import (
    DEFAULT_LABEL_COLOR,
    UNKNOWN_LOGIN,
    Conversation,
    ConversationKind,
    ConversationState,
    Label,
    LabelEvent,
    Message,
    MessageAuthor,
    MessageKind,
    RepoRef,
    parse_timestamp,
)
from core.phases import annotate_messages, last_bot_message
from graphql_client import GitHubGraphQLClient

DEFAULT_MAX_PER_REPO = 100


@dataclass
class TrackedRepo:
    owner: str
    name: str
    full_name: str
    description: Optional[str]
    open_issue_count: int
    private: bool = False


def to_author(user) -> MessageAuthor:
    if user is None:
        return MessageAuthor()
    return MessageAuthor(
        login=getattr(user, 'login', None) or UNKNOWN_LOGIN,
        avatar_url=getattr(user, 'avatar_url', None) or '',
        is_bot=(getattr(user, 'type', None) or '') == 'Bot',
    )


def to_labels(raw_labels: Optional[Iterable]) -> tuple:
    labels = []
    for raw in raw_labels or ():
        if isinstance(raw, str):
            labels.append(Label(name=raw))
            continue
        name = getattr(raw, 'name', None) or ''
        if name:
            labels.append(Label(name=name, color=getattr(raw, 'color', None) or DEFAULT_LABEL_COLOR))
    return tuple(labels)


def to_message(item, kind: MessageKind, created_attr: str = 'created_at') -> Message:
    return Message(
        id=getattr(item, 'id', 0) or 0,
        author=to_author(getattr(item, 'user', None)),
        body=getattr(item, 'body', None) or '',
        created_at=parse_timestamp(getattr(item, created_attr, None)),
        kind=kind,
    )


def _conversation_state(issue) -> ConversationState:
    if (getattr(issue, 'state', '') or '').lower() == 'open':
        return ConversationState.OPEN
    pull_request = getattr(issue, 'pull_request', None)
    if pull_request is not None and getattr(pull_request, 'merged_at', None):
        return ConversationState.MERGED
    return ConversationState.CLOSED


def _chronological(messages: List[Message]) -> List[Message]:
    # Body first; undated entries keep their fetch position at the end.
    body_kinds = (MessageKind.ISSUE_BODY, MessageKind.PR_BODY)
    head = [m for m in messages if m.kind in body_kinds]
    rest = [m for m in messages if m.kind not in body_kinds]
    dated = [m for m in rest if m.created_at is not None]
    undated = [m for m in rest if m.created_at is None]
    dated.sort(key=lambda m: m.created_at)
    return head + dated + undated


class ConversationLoader:
    """Fetches raw GitHub payloads and builds classified conversations."""

    def __init__(self, github: Github, graphql: GitHubGraphQLClient, max_per_repo: int = DEFAULT_MAX_PER_REPO):
        self.github = github
        self.graphql = graphql
        self.max_per_repo = max_per_repo
        self.logger = logging.getLogger('taskboard.loader')

    def list_conversations(self, repo_names: Iterable[str], inspect_comments: bool = True) -> List[Conversation]:
        """Conversations across repositories, most recently updated first.

        Repositories that cannot be read are logged and skipped.
        """
        conversations: List[Conversation] = []
        for repo_name in repo_names:
            try:
                conversations.extend(self._load_repo(RepoRef.parse(repo_name), inspect_comments))
            except ValueError as exc:
                self.logger.error(f"Skipping {repo_name}: {exc}")
            except (GithubException, requests.RequestException) as exc:
                self.logger.error(f"Failed to load conversations for {repo_name}: {exc}")

        dated = [c for c in conversations if c.updated_at is not None]
        undated = [c for c in conversations if c.updated_at is None]
        dated.sort(key=lambda c: c.updated_at, reverse=True)
        return dated + undated

    def _load_repo(self, repo_ref: RepoRef, inspect_comments: bool) -> List[Conversation]:
        repo = self.github.get_repo(repo_ref.full_name)
        conversations = []
        for issue in repo.get_issues(state='all', sort='updated', direction='desc'):
            messages = None
            if inspect_comments and (getattr(issue, 'state', '') or '') == 'open':
                messages = self._messages_for(repo, repo_ref, issue)
            conversations.append(self.build_conversation(repo_ref, issue, messages))
            if len(conversations) >= self.max_per_repo:
                break
        self.logger.info(f"Loaded {len(conversations)} conversations from {repo_ref.full_name}")
        return conversations

    def build_conversation(self, repo_ref: RepoRef, issue, messages: Optional[List[Message]] = None) -> Conversation:
        """Build a fresh conversation; ``messages`` must already be annotated."""
        kind = ConversationKind.PULL_REQUEST if getattr(issue, 'pull_request', None) else ConversationKind.ISSUE
        labels = to_labels(getattr(issue, 'labels', None))
        last_bot = last_bot_message(messages) if messages else None
        return Conversation(
            repo=repo_ref,
            kind=kind,
            number=issue.number,
            title=getattr(issue, 'title', None) or '',
            state=_conversation_state(issue),
            labels=labels,
            created_at=parse_timestamp(getattr(issue, 'created_at', None)),
            updated_at=parse_timestamp(getattr(issue, 'updated_at', None)),
            body=getattr(issue, 'body', None) or '',
            author=to_author(getattr(issue, 'user', None)),
            attention_level=classify(labels, last_bot, kind),
            last_message=messages[-1] if messages else None,
        )

    def load_conversation(self, repo_name: str, number: int):
        """Return ``(conversation, messages)`` for one issue or PR."""
        repo_ref = RepoRef.parse(repo_name)
        repo = self.github.get_repo(repo_ref.full_name)
        issue = repo.get_issue(number)
        messages = self._messages_for(repo, repo_ref, issue)
        return self.build_conversation(repo_ref, issue, messages), messages

    def list_messages(self, repo_name: str, number: int) -> List[Message]:
        return self.load_conversation(repo_name, number)[1]

    def _messages_for(self, repo, repo_ref: RepoRef, issue) -> List[Message]:
        is_pr = bool(getattr(issue, 'pull_request', None))
        body_kind = MessageKind.PR_BODY if is_pr else MessageKind.ISSUE_BODY
        messages = [to_message(issue, body_kind)]

        try:
            for comment in issue.get_comments():
                messages.append(to_message(comment, MessageKind.COMMENT))
        except (GithubException, requests.RequestException) as exc:
            self.logger.error(f"Failed to load comments for {repo_ref.full_name}#{issue.number}: {exc}")

        if is_pr:
            messages.extend(self._review_messages(repo, repo_ref, issue.number))

        events = self.fetch_label_events(repo_ref, issue.number)
        return annotate_messages(_chronological(messages), events)

    def _review_messages(self, repo, repo_ref: RepoRef, number: int) -> List[Message]:
        messages = []
        try:
            pr = repo.get_pull(number)
            for comment in pr.get_review_comments():
                messages.append(to_message(comment, MessageKind.REVIEW_COMMENT))
            for review in pr.get_reviews():
                if (getattr(review, 'body', None) or '').strip():
                    messages.append(to_message(review, MessageKind.REVIEW_COMMENT, created_attr='submitted_at'))
        except (GithubException, requests.RequestException) as exc:
            self.logger.error(f"Failed to load reviews for {repo_ref.full_name}#{number}: {exc}")
        return messages

    def fetch_label_events(self, repo_ref: RepoRef, number: int) -> List[LabelEvent]:
        """Label timeline for one conversation; empty when it cannot be fetched."""
        try:
            return self.graphql.get_label_events(repo_ref.owner, repo_ref.name, number)
        except (RuntimeError, requests.RequestException) as exc:
            self.logger.warning(f"Label timeline unavailable for {repo_ref.full_name}#{number}: {exc}")
            return []

    def list_user_repos(self) -> List[TrackedRepo]:
        user = self.github.get_user()
        repos = []
        for repo in user.get_repos(type='owner', sort='updated'):
            repos.append(TrackedRepo(
                owner=repo.owner.login,
                name=repo.name,
                full_name=repo.full_name,
                description=repo.description,
                open_issue_count=repo.open_issues_count,
                private=bool(repo.private),
            ))
            if len(repos) >= self.max_per_repo:
                break
        return repos
