"""Tests for agent phase resolution and message annotation."""

from datetime import datetime, timedelta, timezone

from core.models import AgentPhase, LabelEvent, LabelEventKind, Message, MessageAuthor, MessageKind
from core.phases import annotate_messages, is_human_comment, last_bot_message, resolve_phase

T0 = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def at(minutes):
    return T0 + timedelta(minutes=minutes)


def labeled(name, minutes):
    return LabelEvent(LabelEventKind.LABELED, name, at(minutes))


def unlabeled(name, minutes):
    return LabelEvent(LabelEventKind.UNLABELED, name, at(minutes))


def message(body, minutes, is_bot=False, kind=MessageKind.COMMENT, msg_id=1):
    return Message(
        id=msg_id,
        author=MessageAuthor(login="claude[bot]" if is_bot else "octocat", is_bot=is_bot),
        body=body,
        created_at=at(minutes),
        kind=kind,
    )


SCENARIO_EVENTS = [
    labeled("planning", 0),
    labeled("ready-to-implement", 10),
    unlabeled("planning", 10),
]


def test_plan_then_implement_scenario():
    assert resolve_phase(at(5), SCENARIO_EVENTS) == AgentPhase.PLAN
    assert resolve_phase(at(15), SCENARIO_EVENTS) == AgentPhase.IMPLEMENT


def test_no_workflow_label_means_no_phase():
    assert resolve_phase(at(5), []) is None
    assert resolve_phase(at(5), [labeled("claude-working", 0)]) is None
    assert resolve_phase(at(-5), SCENARIO_EVENTS) is None


def test_phase_priority_when_several_labels_active():
    events = [labeled("planning", 0), labeled("plan-review", 1), labeled("ready-to-implement", 2)]
    assert resolve_phase(at(0), events) == AgentPhase.PLAN
    assert resolve_phase(at(1), events) == AgentPhase.REVIEW
    assert resolve_phase(at(2), events) == AgentPhase.IMPLEMENT


def test_human_markers():
    assert is_human_comment("@claude please fix the tests")
    assert is_human_comment("   @Claude   go ahead")
    assert is_human_comment("[auto-continue] resuming")
    assert not is_human_comment("Here is the plan: ...")
    assert not is_human_comment("please ask @claude")
    assert not is_human_comment(None)


def test_bot_messages_get_phase():
    annotated = annotate_messages([message("Plan: step 1", 5, is_bot=True)], SCENARIO_EVENTS)
    assert annotated[0].agent_phase == AgentPhase.PLAN
    assert annotated[0].author.is_bot


def test_bot_message_outside_workflow_has_no_phase():
    annotated = annotate_messages([message("Done", 5, is_bot=True)], [])
    assert annotated[0].agent_phase is None
    assert annotated[0].author.is_bot


def test_unmarked_comment_during_phase_is_promoted_to_bot():
    original = message("I've implemented the change.", 15)
    annotated = annotate_messages([original], SCENARIO_EVENTS)
    assert annotated[0].author.is_bot
    assert annotated[0].agent_phase == AgentPhase.IMPLEMENT
    assert annotated[0].author.login == "octocat"
    # inputs are left untouched
    assert not original.author.is_bot
    assert original.agent_phase is None


def test_marked_human_comment_is_never_promoted():
    annotated = annotate_messages([message("@claude looks good, continue", 15)], SCENARIO_EVENTS)
    assert not annotated[0].author.is_bot
    assert annotated[0].agent_phase is None


def test_unmarked_comment_without_phase_stays_human():
    annotated = annotate_messages([message("Thanks!", 5)], [])
    assert not annotated[0].author.is_bot


def test_issue_and_pr_bodies_are_exempt():
    bodies = [
        message("Please build a login page", 5, kind=MessageKind.ISSUE_BODY),
        message("Implements login", 15, is_bot=True, kind=MessageKind.PR_BODY),
    ]
    annotated = annotate_messages(bodies, SCENARIO_EVENTS)
    assert annotated == bodies


def test_missing_body_and_timestamp_do_not_raise():
    broken = Message(id=3, author=MessageAuthor(), body=None, created_at=None)
    annotated = annotate_messages([broken], SCENARIO_EVENTS)
    assert annotated[0] == broken


def test_last_bot_message_picks_latest_non_empty():
    messages = [
        message("Plan ready", 1, is_bot=True, msg_id=1),
        message("@claude ok", 2, msg_id=2),
        message("Should I add tests?", 3, is_bot=True, msg_id=3),
        message("   ", 4, is_bot=True, msg_id=4),
        message("@claude yes", 5, msg_id=5),
    ]
    assert last_bot_message(messages).id == 3
    assert last_bot_message([message("@claude hi", 1)]) is None
    assert last_bot_message(None) is None
