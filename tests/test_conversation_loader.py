"""Tests for building conversations from PyGithub objects."""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import requests
from github import GithubException

from core.models import (
    AgentPhase,
    AttentionLevel,
    ConversationKind,
    ConversationState,
    LabelEvent,
    LabelEventKind,
    MessageKind,
    RepoRef,
)
from dashboard.conversation_loader import ConversationLoader, to_author, to_labels

T0 = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def at(minutes):
    return T0 + timedelta(minutes=minutes)


def make_user(login, is_bot=False):
    user = Mock()
    user.login = login
    user.avatar_url = f"https://avatars.example/{login}"
    user.type = "Bot" if is_bot else "User"
    return user


def make_label(name, color="ededed"):
    label = Mock()
    label.name = name
    label.color = color
    return label


def make_comment(comment_id, body, minutes, user):
    comment = Mock()
    comment.id = comment_id
    comment.body = body
    comment.created_at = at(minutes)
    comment.user = user
    return comment


def make_issue(number, labels=(), state="open", pull_request=None, comments=(), updated=0, title="Task"):
    issue = Mock()
    issue.id = 1000 + number
    issue.number = number
    issue.title = title
    issue.body = "Please do the thing"
    issue.state = state
    issue.labels = [make_label(name) for name in labels]
    issue.created_at = at(0)
    issue.updated_at = at(updated)
    issue.user = make_user("octocat")
    issue.pull_request = pull_request
    issue.get_comments.return_value = list(comments)
    return issue


def make_loader(issues, events=None):
    repo = Mock()
    repo.get_issues.return_value = issues
    repo.get_issue.side_effect = lambda number: next(i for i in issues if i.number == number)
    github = Mock()
    github.get_repo.return_value = repo
    graphql = Mock()
    graphql.get_label_events.return_value = list(events or [])
    return ConversationLoader(github, graphql), github, graphql, repo


def test_to_author_handles_missing_user():
    author = to_author(None)
    assert author.login == "unknown"
    assert author.avatar_url == ""
    assert not author.is_bot
    assert to_author(make_user("claude[bot]", is_bot=True)).is_bot


def test_to_labels_defaults_color_and_drops_nameless():
    nameless = make_label("")
    plain = make_label("bug", color=None)
    labels = to_labels([plain, nameless, "planning"])
    assert [(l.name, l.color) for l in labels] == [("bug", "888888"), ("planning", "888888")]


def test_issue_becomes_classified_conversation():
    issue = make_issue(7, labels=["blocked"])
    loader, _, _, _ = make_loader([issue])
    conversations = loader.list_conversations(["acme/widgets"], inspect_comments=False)

    assert len(conversations) == 1
    conversation = conversations[0]
    assert conversation.id == "acme-widgets-issue-7"
    assert conversation.kind == ConversationKind.ISSUE
    assert conversation.state == ConversationState.OPEN
    assert conversation.attention_level == AttentionLevel.URGENT
    assert conversation.label_names == ("blocked",)


def test_pull_request_defaults_to_review_and_merged_state():
    open_pr = make_issue(1, pull_request=Mock(merged_at=None))
    merged_pr = make_issue(2, state="closed", pull_request=Mock(merged_at=at(5)), labels=["auto-merge"])
    loader, _, _, _ = make_loader([open_pr, merged_pr])
    by_number = {c.number: c for c in loader.list_conversations(["acme/widgets"], inspect_comments=False)}

    assert by_number[1].kind == ConversationKind.PULL_REQUEST
    assert by_number[1].attention_level == AttentionLevel.REVIEW
    assert by_number[2].state == ConversationState.MERGED
    assert by_number[2].attention_level == AttentionLevel.NONE


def test_conversations_sorted_by_most_recent_update():
    loader, _, _, _ = make_loader([make_issue(1, updated=5), make_issue(2, updated=50), make_issue(3, updated=20)])
    numbers = [c.number for c in loader.list_conversations(["acme/widgets"], inspect_comments=False)]
    assert numbers == [2, 3, 1]


def test_bot_question_in_comments_makes_issue_urgent():
    bot = make_user("claude[bot]", is_bot=True)
    issue = make_issue(3, comments=[make_comment(1, "Should I use Postgres or SQLite?", 5, bot)])
    loader, _, graphql, _ = make_loader([issue])

    conversation = loader.list_conversations(["acme/widgets"])[0]

    assert conversation.attention_level == AttentionLevel.URGENT
    assert conversation.last_message.body.startswith("Should I")
    graphql.get_label_events.assert_called_once_with("acme", "widgets", 3)


def test_closed_conversations_skip_comment_loading():
    issue = make_issue(4, state="closed")
    loader, _, graphql, _ = make_loader([issue])
    loader.list_conversations(["acme/widgets"])
    issue.get_comments.assert_not_called()
    graphql.get_label_events.assert_not_called()


def test_invalid_and_failing_repos_are_skipped():
    loader, github, _, _ = make_loader([make_issue(1)])
    github.get_repo.side_effect = [GithubException(404, {"message": "Not Found"}, None), github.get_repo.return_value]
    conversations = loader.list_conversations(["not-a-repo", "acme/missing", "acme/widgets"], inspect_comments=False)
    assert [c.number for c in conversations] == [1]


def test_network_error_on_one_repo_skips_only_that_repo():
    loader, github, _, _ = make_loader([make_issue(1)])
    github.get_repo.side_effect = [requests.ConnectionError("reset by peer"), github.get_repo.return_value]
    conversations = loader.list_conversations(["acme/down", "acme/widgets"], inspect_comments=False)
    assert [c.number for c in conversations] == [1]


def test_comment_timeout_keeps_conversation():
    issue = make_issue(3, labels=["claude-working"])
    issue.get_comments.side_effect = requests.Timeout("read timed out")
    loader, _, _, _ = make_loader([issue])

    conversations = loader.list_conversations(["acme/widgets"])

    assert [c.number for c in conversations] == [3]
    assert conversations[0].attention_level == AttentionLevel.WORKING
    assert conversations[0].last_message.kind == MessageKind.ISSUE_BODY


def test_review_fetch_network_error_keeps_comments():
    bot = make_user("claude[bot]", is_bot=True)
    pr = make_issue(4, pull_request=Mock(merged_at=None), comments=[make_comment(31, "Pushed a fix.", 5, bot)])
    loader, _, _, repo = make_loader([pr])
    repo.get_pull.side_effect = requests.ConnectionError("connection aborted")

    _, messages = loader.load_conversation("acme/widgets", 4)

    assert [m.kind for m in messages] == [MessageKind.PR_BODY, MessageKind.COMMENT]


def test_load_conversation_annotates_messages():
    bot = make_user("claude[bot]", is_bot=True)
    automation = make_user("ci-user")
    human = make_user("octocat")
    comments = [
        make_comment(11, "Here is the plan.", 5, bot),
        make_comment(12, "@claude Plan approved. Proceed with implementation.", 12, human),
        make_comment(13, "Implementation pushed.", 15, automation),
    ]
    events = [
        LabelEvent(LabelEventKind.LABELED, "planning", at(0)),
        LabelEvent(LabelEventKind.LABELED, "ready-to-implement", at(10)),
        LabelEvent(LabelEventKind.UNLABELED, "planning", at(10)),
    ]
    issue = make_issue(5, labels=["ready-to-implement"], comments=comments)
    loader, _, _, _ = make_loader([issue], events)

    conversation, messages = loader.load_conversation("acme/widgets", 5)

    assert [m.kind for m in messages] == [
        MessageKind.ISSUE_BODY, MessageKind.COMMENT, MessageKind.COMMENT, MessageKind.COMMENT,
    ]
    assert messages[0].agent_phase is None
    assert messages[1].agent_phase == AgentPhase.PLAN
    assert not messages[2].author.is_bot
    assert messages[3].author.is_bot
    assert messages[3].agent_phase == AgentPhase.IMPLEMENT
    assert conversation.attention_level == AttentionLevel.WORKING


def test_pull_request_messages_include_reviews():
    bot = make_user("claude[bot]", is_bot=True)
    review_comment = make_comment(21, "Nit: rename this", 8, make_user("reviewer"))
    review = Mock(id=22, body="Looks good overall", submitted_at=at(9), user=make_user("reviewer"))
    empty_review = Mock(id=23, body="", submitted_at=at(10), user=make_user("reviewer"))
    pr_issue = make_issue(6, pull_request=Mock(merged_at=None),
                          comments=[make_comment(20, "Opened PR", 3, bot)])
    loader, _, _, repo = make_loader([pr_issue])
    pull = Mock()
    pull.get_review_comments.return_value = [review_comment]
    pull.get_reviews.return_value = [review, empty_review]
    repo.get_pull.return_value = pull

    messages = loader.list_messages("acme/widgets", 6)

    assert [m.id for m in messages] == [1006, 20, 21, 22]
    assert messages[0].kind == MessageKind.PR_BODY
    assert messages[2].kind == MessageKind.REVIEW_COMMENT
    assert messages[3].created_at == at(9)


def test_failed_label_timeline_means_no_events():
    loader, _, graphql, _ = make_loader([])
    graphql.get_label_events.side_effect = RuntimeError("GraphQL errors: boom")
    assert loader.fetch_label_events(RepoRef("acme", "widgets"), 1) == []


def test_list_user_repos():
    loader, github, _, _ = make_loader([])
    owner = Mock()
    owner.login = "acme"
    repo = Mock(full_name="acme/widgets", description="Widgets", open_issues_count=3, private=True, owner=owner)
    repo.name = "widgets"
    github.get_user.return_value.get_repos.return_value = [repo]

    repos = loader.list_user_repos()

    assert repos[0].full_name == "acme/widgets"
    assert repos[0].name == "widgets"
    assert repos[0].private
    github.get_user.return_value.get_repos.assert_called_once_with(type='owner', sort='updated')
