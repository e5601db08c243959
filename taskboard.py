#!/usr/bin/env python3
"""
Taskboard - triage GitHub issues and pull requests worked on by a coding agent.

Each issue or PR is shown as a conversation with the agent. Conversations are
classified by attention level so the ones that need a human surface first.
"""

import os
import json
import logging
import argparse
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Dict, Any

import requests
from github import Github, GithubException
from dotenv import load_dotenv

from core.models import AttentionLevel, Conversation, Message, RepoRef, conversation_id, parse_conversation_id, ConversationKind
from core.phases import AGENT_MENTION_MARKER
from core.timeline import LABEL_PLANNING, normalize_label
from dashboard.attention_board import AttentionBoard, build_attention_board
from dashboard.conversation_loader import ConversationLoader, TrackedRepo
from graphql_client import GitHubGraphQLClient
from reporting import (
    author_badge,
    board_to_dict,
    conversation_to_dict,
    format_relative_time,
    format_table,
    message_to_dict,
    shorten_text,
)

PLAN_APPROVAL_TEXT = "Plan approved. Proceed with implementation."
ISSUE_TITLE_LIMIT = 80

_TRUE_VALUES = {'1', 'true', 'yes', 'on'}
_FALSE_VALUES = {'0', 'false', 'no', 'off'}


@dataclass
class DashboardReport:
    """Result of one dashboard refresh across the tracked repositories."""
    repos: List[str]
    board: AttentionBoard
    conversations: List[Conversation] = field(default_factory=list)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        data = board_to_dict(self.board)
        data.update({
            "repos": list(self.repos),
            "timestamp": self.timestamp,
            "conversations": [conversation_to_dict(c) for c in self.conversations],
        })
        return data


@dataclass
class ConversationDetail:
    conversation: Conversation
    messages: List[Message]
    can_approve_plan: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conversation": conversation_to_dict(self.conversation),
            "messages": [message_to_dict(m) for m in self.messages],
            "canApprovePlan": self.can_approve_plan,
        }


def mask_token(token: str) -> str:
    token_length = len(token)
    if token_length > 10:
        return token[:6] + "*" * (token_length - 10) + token[-4:]
    if token_length > 4:
        return "*" * (token_length - 4) + token[-4:]
    return "*" * token_length


def extract_issue_title(message: str, limit: int = ISSUE_TITLE_LIMIT) -> str:
    """First non-empty line of a task description, truncated for use as an issue title."""
    for line in (message or '').splitlines():
        line = line.strip()
        if line:
            return line if len(line) <= limit else line[: limit - 3] + "..."
    return "New task"


def mention_agent(text: str) -> str:
    return f"{AGENT_MENTION_MARKER} {text.strip()}"


def can_approve_plan(conversation: Conversation, messages: List[Message]) -> bool:
    """A plan can be approved while planning is active and the agent has answered."""
    planning = any(normalize_label(label.name) == LABEL_PLANNING for label in conversation.labels)
    return planning and any(m.author.is_bot for m in messages)


def _get_flag_from_env(name: str, default: bool) -> bool:
    """
    Read a boolean environment variable.
    Raises ValueError for values that are neither true nor false.
    """
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    value = value.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid {name}: {value}. Must be one of 1/0, true/false, yes/no, on/off.")


def _get_tracked_repos_from_env() -> List[str]:
    repos_env = os.getenv('TASKBOARD_REPOS', '')
    return [r.strip() for r in repos_env.split(',') if r.strip()]


class Taskboard:

    def __init__(self, github_token: str, verbose: bool = False, show_completed: bool = False, inspect_comments: bool = True):
        self.github_token = github_token
        self.github = Github(github_token)
        self.graphql = GitHubGraphQLClient(github_token)
        self.verbose = verbose
        self.show_completed = show_completed
        self.inspect_comments = inspect_comments
        self.logger = self._setup_logger()
        self.loader = ConversationLoader(self.github, self.graphql)
        self.logger.info(f"[Taskboard] Using GitHub token: {mask_token(github_token)} (length: {len(github_token)})")

    def _setup_logger(self) -> logging.Logger:
        logger = logging.getLogger('taskboard')
        logger.setLevel(logging.DEBUG if self.verbose else logging.INFO)
        # Prevent propagation to root logger to avoid duplicate messages
        logger.propagate = False
        if self.verbose:
            formatter = logging.Formatter('[%(asctime)s - %(pathname)s:%(lineno)d - %(levelname)s] %(message)s')
        else:
            formatter = logging.Formatter('%(message)s')
        if not logger.handlers:
            logger.addHandler(logging.StreamHandler())
        for handler in logger.handlers:
            handler.setFormatter(formatter)
        return logger

    def load_dashboard(self, repo_names: List[str]) -> DashboardReport:
        self.logger.info(f"Refreshing dashboard for {len(repo_names)} repositories")
        conversations = self.loader.list_conversations(repo_names, inspect_comments=self.inspect_comments)
        board = build_attention_board(conversations, show_completed=self.show_completed)
        return DashboardReport(repos=list(repo_names), board=board, conversations=conversations)

    def load_conversation(self, repo_name: str, number: int) -> ConversationDetail:
        conversation, messages = self.loader.load_conversation(repo_name, number)
        return ConversationDetail(
            conversation=conversation,
            messages=messages,
            can_approve_plan=can_approve_plan(conversation, messages),
        )

    def _get_issue(self, repo_name: str, number: int):
        repo_ref = RepoRef.parse(repo_name)
        return self.github.get_repo(repo_ref.full_name).get_issue(number)

    def reply(self, repo_name: str, number: int, text: str) -> int:
        """Post a comment addressed to the agent; returns the comment id."""
        if not text or not text.strip():
            raise ValueError("Reply text must not be empty")
        issue = self._get_issue(repo_name, number)
        comment = issue.create_comment(mention_agent(text))
        self.logger.info(f"Replied on {repo_name}#{number}")
        return comment.id

    def approve_plan(self, repo_name: str, number: int) -> int:
        """Drop the planning label and tell the agent to implement."""
        issue = self._get_issue(repo_name, number)
        try:
            issue.remove_from_labels(LABEL_PLANNING)
        except GithubException as exc:
            self.logger.warning(f"Could not remove '{LABEL_PLANNING}' from {repo_name}#{number}: {exc}")
        comment = issue.create_comment(mention_agent(PLAN_APPROVAL_TEXT))
        self.logger.info(f"Approved plan on {repo_name}#{number}")
        return comment.id

    def create_task(self, repo_name: str, message: str, labels: Optional[List[str]] = None) -> str:
        """Open an issue asking the agent to work on ``message``; returns its conversation id."""
        if not message or not message.strip():
            raise ValueError("Task description must not be empty")
        repo_ref = RepoRef.parse(repo_name)
        repo = self.github.get_repo(repo_ref.full_name)
        issue = repo.create_issue(
            title=extract_issue_title(message),
            body=mention_agent(message),
            labels=labels or [],
        )
        self.logger.info(f"Created issue {repo_ref.full_name}#{issue.number}")
        return conversation_id(repo_ref, ConversationKind.ISSUE, issue.number)

    def list_repos(self) -> List[TrackedRepo]:
        return self.loader.list_user_repos()

    def save_report(self, report: DashboardReport, filename: Optional[str] = None) -> str:
        out_filename: str
        if filename is None:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            out_filename = f"taskboard_report_{timestamp}.json"
        else:
            out_filename = filename
        with open(out_filename, 'w', encoding='utf-8') as f:
            json.dump(report.to_dict(), f, indent=2, ensure_ascii=False)
        self.logger.info(f"Report saved to {out_filename}")
        return out_filename

    def print_dashboard(self, report: DashboardReport):
        print("\nTASKBOARD")
        counts = report.board.level_counts
        summary_rows = [
            ("Timestamp", report.timestamp),
            ("Repositories", ", ".join(report.repos)),
            ("Conversations", len(report.conversations)),
        ]
        for level in AttentionLevel:
            if counts.get(level.value):
                summary_rows.append((level.value.capitalize(), counts[level.value]))
        if report.board.hidden_completed:
            summary_rows.append(("Completed (hidden)", report.board.hidden_completed))
        print(format_table(["Metric", "Value"], summary_rows))

        print("\nNEEDS YOUR ATTENTION")
        attention_rows = [
            [
                item.level,
                f"{item.conversation.repo.full_name}#{item.conversation.number}",
                shorten_text(item.conversation.title, 50),
                item.reason,
                format_relative_time(item.conversation.updated_at),
            ]
            for item in report.board.attention_items
        ]
        print(format_table(["Level", "Conversation", "Title", "Reason", "Updated"], attention_rows,
                           empty_message="Nothing needs you right now"))

        print("\nRECENT ACTIVITY")
        recent_rows = [
            [
                f"{c.repo.full_name}#{c.number}",
                c.kind,
                c.state,
                shorten_text(c.title, 50),
                ", ".join(c.label_names[:3]),
                format_relative_time(c.updated_at),
            ]
            for c in report.board.recent_activity
        ]
        print(format_table(["Conversation", "Type", "State", "Title", "Labels", "Updated"], recent_rows,
                           empty_message="No recent activity"))

    def print_conversation(self, detail: ConversationDetail):
        conversation = detail.conversation
        print(f"\n{conversation.repo.full_name} #{conversation.number}: {conversation.title}")
        print(f"{conversation.url} [{conversation.state.value}] attention={conversation.attention_level.value}")
        rows = [
            [
                author_badge(message),
                message.kind,
                format_relative_time(message.created_at),
                shorten_text(message.body, 90),
            ]
            for message in detail.messages
            if (message.body or '').strip()
        ]
        print(format_table(["From", "Type", "When", "Message"], rows, empty_message="No messages"))
        if detail.can_approve_plan:
            print(f"\nPlan is awaiting approval: taskboard approve {conversation.repo.full_name} {conversation.number}")

    def print_repos(self, repos: List[TrackedRepo]):
        rows = [
            [r.full_name, "private" if r.private else "public", r.open_issue_count, shorten_text(r.description, 60)]
            for r in repos
        ]
        print(format_table(["Repository", "Visibility", "Open", "Description"], rows, empty_message="No repositories"))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Taskboard - see which agent conversations need you')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable verbose logging')
    subparsers = parser.add_subparsers(dest='command')

    dashboard = subparsers.add_parser('dashboard', help='Show conversations that need attention (default)')
    dashboard.add_argument('repositories', nargs='*',
                           help='GitHub repositories to track (format: owner/repo, default: TASKBOARD_REPOS)')
    dashboard.add_argument('--show-completed', action='store_true', default=None,
                           help='Include closed and merged conversations')
    dashboard.add_argument('--fast', action='store_true',
                           help='Skip loading comments; questions asked by the agent are not detected')
    dashboard.add_argument('--save-report', action='store_true',
                           help='Save the dashboard to a JSON file')
    dashboard.add_argument('--output', '-o',
                           help='Output filename for the report (default: auto-generated)')

    show = subparsers.add_parser('show', help='Show the messages of one conversation')
    show.add_argument('repository', help='owner/repo')
    show.add_argument('number', type=int, help='Issue or PR number')

    reply = subparsers.add_parser('reply', help='Reply to the agent on a conversation')
    reply.add_argument('repository', help='owner/repo')
    reply.add_argument('number', type=int, help='Issue or PR number')
    reply.add_argument('text', help='Message for the agent')

    approve = subparsers.add_parser('approve', help='Approve the agent plan and start implementation')
    approve.add_argument('repository', help='owner/repo')
    approve.add_argument('number', type=int, help='Issue number')

    new = subparsers.add_parser('new', help='Open a new task for the agent')
    new.add_argument('repository', help='owner/repo')
    new.add_argument('message', help='Task description; the first line becomes the title')

    subparsers.add_parser('repos', help='List repositories you own')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the taskboard command."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    command = args.command or 'dashboard'

    # Load environment variables from .env file (if it exists)
    load_dotenv(override=True)

    github_token = os.getenv('GITHUB_TOKEN')
    if not github_token:
        print("Error: GITHUB_TOKEN environment variable is required")
        print("Set it in .env file or as a system environment variable")
        return 1

    try:
        show_completed = getattr(args, 'show_completed', None)
        if show_completed is None:
            show_completed = _get_flag_from_env('TASKBOARD_SHOW_COMPLETED', False)
        inspect_comments = _get_flag_from_env('TASKBOARD_INSPECT_COMMENTS', True) and not getattr(args, 'fast', False)
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    taskboard = Taskboard(
        github_token,
        verbose=args.verbose,
        show_completed=show_completed,
        inspect_comments=inspect_comments,
    )

    try:
        if command == 'dashboard':
            repos = getattr(args, 'repositories', None) or _get_tracked_repos_from_env()
            if not repos:
                print("No repositories to track. Pass owner/repo arguments or set TASKBOARD_REPOS.")
                return 1
            report = taskboard.load_dashboard(repos)
            if getattr(args, 'save_report', False):
                filename = taskboard.save_report(report, args.output)
                print(f"\nDetailed report saved to: {filename}")
            taskboard.print_dashboard(report)
        elif command == 'show':
            taskboard.print_conversation(taskboard.load_conversation(args.repository, args.number))
        elif command == 'reply':
            comment_id = taskboard.reply(args.repository, args.number, args.text)
            print(f"Posted comment {comment_id}")
        elif command == 'approve':
            comment_id = taskboard.approve_plan(args.repository, args.number)
            print(f"Plan approved (comment {comment_id})")
        elif command == 'new':
            print(f"Created conversation {taskboard.create_task(args.repository, args.message)}")
        elif command == 'repos':
            taskboard.print_repos(taskboard.list_repos())
        return 0
    except ValueError as e:
        print(f"Error: {e}")
        return 1
    except GithubException as e:
        print(f"GitHub error: {e}")
        return 1
    except requests.RequestException as e:
        print(f"Network error talking to GitHub: {e}")
        return 1


def _make_taskboard_from_env(input_data: dict) -> Taskboard:
    github_token = os.getenv('GITHUB_TOKEN')
    if not github_token:
        raise ValueError("Missing GITHUB_TOKEN in environment")
    show_completed = input_data.get('show_completed')
    if show_completed is None:
        show_completed = _get_flag_from_env('TASKBOARD_SHOW_COMPLETED', False)
    inspect_comments = input_data.get('inspect_comments')
    if inspect_comments is None:
        inspect_comments = _get_flag_from_env('TASKBOARD_INSPECT_COMMENTS', True)
    return Taskboard(github_token, show_completed=bool(show_completed), inspect_comments=bool(inspect_comments))


def _upstream_error(exc: Exception) -> dict:
    # Marks failures on GitHub's side so HTTP callers can tell them from bad input.
    return {"error": f"GitHub request failed: {exc}", "upstream": True}


def dashboard_api(input_data: dict) -> dict:
    """API function returning the dashboard as JSON-ready data for HTTP callers."""
    try:
        taskboard = _make_taskboard_from_env(input_data)
    except ValueError as e:
        return {"error": str(e)}

    repo_names = input_data.get('repo_names') or _get_tracked_repos_from_env()
    if not isinstance(repo_names, list) or not repo_names:
        return {"error": "Missing or invalid repo_names (should be a list) in input"}

    try:
        return taskboard.load_dashboard(repo_names).to_dict()
    except (GithubException, requests.RequestException) as e:
        return _upstream_error(e)


def conversation_api(input_data: dict) -> dict:
    """API function returning one conversation with its annotated messages.

    Accepts either ``conversation_id`` ("owner-repo-issue-7") or
    ``repo_name`` plus ``number``.
    """
    try:
        taskboard = _make_taskboard_from_env(input_data)
        if input_data.get('conversation_id'):
            repo_ref, _, number = parse_conversation_id(input_data['conversation_id'])
            repo_name = repo_ref.full_name
        else:
            repo_name = input_data.get('repo_name') or ''
            number = int(input_data.get('number'))
    except (TypeError, ValueError) as e:
        return {"error": str(e)}

    try:
        return taskboard.load_conversation(repo_name, number).to_dict()
    except ValueError as e:
        return {"error": str(e)}
    except (GithubException, requests.RequestException) as e:
        return _upstream_error(e)


if __name__ == '__main__':
    exit(main())
