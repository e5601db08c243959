"""
GraphQL client for GitHub API operations.
Fetches the label-change timeline of issues and pull requests, which the
REST API only exposes one page of events at a time.
"""

import logging
from typing import Dict, Any, List, Optional
import requests

from core.models import LabelEvent, LabelEventKind, parse_timestamp

GITHUB_GRAPHQL_ENDPOINT = "https://api.github.com/graphql"

_LABEL_CHANGE_NODES = """
                        nodes {
                            __typename
                            ... on LabeledEvent {
                                createdAt
                                label { name }
                            }
                            ... on UnlabeledEvent {
                                createdAt
                                label { name }
                            }
                        }
                        pageInfo {
                            hasNextPage
                            endCursor
                        }
"""

LABEL_EVENTS_QUERY = """
query GetLabelEvents($owner: String!, $name: String!, $number: Int!, $cursor: String) {
    repository(owner: $owner, name: $name) {
        issueOrPullRequest(number: $number) {
            ... on Issue {
                timelineItems(first: 100, after: $cursor, itemTypes: [LABELED_EVENT, UNLABELED_EVENT]) {
%(nodes)s
                }
            }
            ... on PullRequest {
                timelineItems(first: 100, after: $cursor, itemTypes: [LABELED_EVENT, UNLABELED_EVENT]) {
%(nodes)s
                }
            }
        }
    }
}
""" % {"nodes": _LABEL_CHANGE_NODES}

_EVENT_KINDS = {
    "LabeledEvent": LabelEventKind.LABELED,
    "UnlabeledEvent": LabelEventKind.UNLABELED,
}


class GitHubGraphQLClient:
    """GraphQL client for GitHub API operations."""

    def __init__(self, token: str, timeout: int = 30):
        self.token = token
        self.endpoint = GITHUB_GRAPHQL_ENDPOINT
        self.timeout = timeout
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        self.logger = logging.getLogger('taskboard.graphql')

    def execute_query(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Execute a GraphQL query and return its ``data`` member.

        Raises RuntimeError on HTTP failures, undecodable bodies and GraphQL errors.
        """
        payload: Dict[str, Any] = {"query": query, "variables": variables or {}}
        response = requests.post(
            self.endpoint,
            headers=self.headers,
            json=payload,
            timeout=self.timeout,
        )
        try:
            response.raise_for_status()
        except requests.HTTPError as http_err:
            body_preview = response.text[:500]
            raise RuntimeError(
                f"GraphQL request failed with status {response.status_code}: {body_preview}"
            ) from http_err
        try:
            result = response.json()
        except ValueError as json_err:
            body_preview = response.text[:500]
            raise RuntimeError(
                f"Failed to decode GraphQL response as JSON: {body_preview}"
            ) from json_err

        if result.get("errors"):
            error_msg = "; ".join(error.get("message", "Unknown error") for error in result["errors"])
            raise RuntimeError(f"GraphQL errors: {error_msg}")
        return result.get("data") or {}

    def get_label_events(self, owner: str, name: str, number: int) -> List[LabelEvent]:
        """Return every label add/remove on an issue or PR, in emission order."""
        events: List[LabelEvent] = []
        cursor: Optional[str] = None
        while True:
            variables = {"owner": owner, "name": name, "number": number, "cursor": cursor}
            data = self.execute_query(LABEL_EVENTS_QUERY, variables)
            item = (data.get("repository") or {}).get("issueOrPullRequest") or {}
            timeline = item.get("timelineItems") or {}

            for node in timeline.get("nodes") or []:
                kind = _EVENT_KINDS.get((node or {}).get("__typename"))
                label_name = ((node or {}).get("label") or {}).get("name")
                if kind is None or not label_name:
                    continue
                events.append(LabelEvent(
                    kind=kind,
                    label=label_name,
                    timestamp=parse_timestamp(node.get("createdAt")),
                ))

            page_info = timeline.get("pageInfo") or {}
            if not page_info.get("hasNextPage") or not page_info.get("endCursor"):
                break
            cursor = page_info["endCursor"]

        self.logger.debug(f"Fetched {len(events)} label events for {owner}/{name}#{number}")
        return events

