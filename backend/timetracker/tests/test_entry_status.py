"""
Entry review lifecycle tests.

Covers the approve/question/revert decisions and the field writes that go
with them, including the sheet-scoped approval mirror.
"""
from datetime import datetime, timezone

from ..database.models import EntryStatus, ProjectRole
from ..workflow.entry_status import (
    CANNOT_APPROVE_ENTRIES, CANNOT_CHANGE_STATUS, CANNOT_QUESTION_ENTRIES, NOT_A_MEMBER,
    NO_SELF_APPROVAL, approve_entry_in_sheet, can_approve_entry, can_question_entry,
    can_revert_entry_to_pending, clear_sheet_approval, project_has_client,
    question_entry_in_sheet, revert_entry_to_pending, set_entry_status
)
from .test_base import entry_snapshot, link_snapshot, membership, principal

NOW = datetime(2024, 2, 1, 9, 30, tzinfo=timezone.utc)


def build_roster(with_client=True):
    owner, expert, reviewer, client = principal(), principal(), principal(), principal()
    roster = [
        membership(owner, ProjectRole.OWNER),
        membership(expert, ProjectRole.EXPERT),
        membership(reviewer, ProjectRole.REVIEWER),
    ]
    if with_client:
        roster.append(membership(client, ProjectRole.CLIENT))
    return owner, expert, reviewer, client, roster


class TestCanApproveEntry:
    """Test cases for entry approval decisions."""

    def test_expert_cannot_approve_own_entry_when_client_exists(self):
        owner, expert, reviewer, client, roster = build_roster(with_client=True)
        entry = entry_snapshot(created_by=expert.id)

        result = can_approve_entry(expert, entry, roster[1], roster)

        assert result.allowed is False
        assert result.reason == NO_SELF_APPROVAL

    def test_other_approver_can_approve_the_same_entry(self):
        owner, expert, reviewer, client, roster = build_roster(with_client=True)
        entry = entry_snapshot(created_by=expert.id)

        assert can_approve_entry(owner, entry, roster[0], roster).allowed is True
        assert can_approve_entry(client, entry, roster[3], roster).allowed is True

    def test_expert_can_approve_own_entry_without_client(self):
        owner, expert, reviewer, client, roster = build_roster(with_client=False)
        entry = entry_snapshot(created_by=expert.id)

        assert can_approve_entry(expert, entry, roster[1], roster).allowed is True

    def test_expert_can_approve_someone_elses_entry_with_client(self):
        owner, expert, reviewer, client, roster = build_roster(with_client=True)
        entry = entry_snapshot(created_by=owner.id)

        assert can_approve_entry(expert, entry, roster[1], roster).allowed is True

    def test_viewer_cannot_approve(self):
        owner, expert, reviewer, client, roster = build_roster()
        viewer = principal()
        result = can_approve_entry(viewer, entry_snapshot(created_by=expert.id),
                                   membership(viewer, ProjectRole.VIEWER), roster)

        assert result.allowed is False
        assert result.reason == CANNOT_APPROVE_ENTRIES

    def test_non_member_is_denied(self):
        owner, expert, reviewer, client, roster = build_roster()
        result = can_approve_entry(principal(), entry_snapshot(created_by=expert.id), None, roster)

        assert result.allowed is False
        assert result.reason == NOT_A_MEMBER

    def test_system_admin_bypasses_self_approval_rule(self):
        owner, expert, reviewer, client, roster = build_roster()
        admin = principal("admin")
        entry = entry_snapshot(created_by=admin.id)

        assert can_approve_entry(admin, entry, None, roster).allowed is True

    def test_unknown_role_string_is_denied(self):
        owner, expert, reviewer, client, roster = build_roster()
        stranger = principal()
        result = can_approve_entry(stranger, entry_snapshot(), membership(stranger, "stakeholder"), roster)

        assert result.allowed is False


class TestCanQuestionEntry:
    """Test cases for entry question decisions."""

    def test_reviewer_and_client_can_question(self):
        owner, expert, reviewer, client, roster = build_roster()

        assert can_question_entry(reviewer, roster[2]).allowed is True
        assert can_question_entry(client, roster[3]).allowed is True

    def test_expert_cannot_question(self):
        owner, expert, reviewer, client, roster = build_roster()
        result = can_question_entry(expert, roster[1])

        assert result.allowed is False
        assert result.reason == CANNOT_QUESTION_ENTRIES

    def test_admin_without_membership_can_question(self):
        assert can_question_entry(principal("super_admin"), None).allowed is True

    def test_non_member_cannot_question(self):
        assert can_question_entry(principal(), None).reason == NOT_A_MEMBER


class TestCanRevertEntryToPending:
    """Test cases for putting an entry back to pending."""

    def test_author_with_edit_own_may_revert(self):
        owner, expert, reviewer, client, roster = build_roster()
        entry = entry_snapshot(created_by=expert.id, status=EntryStatus.QUESTIONED)

        assert can_revert_entry_to_pending(expert, entry, roster[1]).allowed is True

    def test_expert_cannot_revert_someone_elses_entry(self):
        owner, expert, reviewer, client, roster = build_roster()
        entry = entry_snapshot(created_by=owner.id, status=EntryStatus.QUESTIONED)
        result = can_revert_entry_to_pending(expert, entry, roster[1])

        assert result.allowed is False
        assert result.reason == CANNOT_CHANGE_STATUS

    def test_reviewer_may_change_any_status(self):
        owner, expert, reviewer, client, roster = build_roster()
        entry = entry_snapshot(created_by=expert.id, status=EntryStatus.QUESTIONED)

        assert can_revert_entry_to_pending(reviewer, entry, roster[2]).allowed is True

    def test_client_may_not_revert(self):
        owner, expert, reviewer, client, roster = build_roster()
        entry = entry_snapshot(created_by=expert.id, status=EntryStatus.QUESTIONED)

        assert can_revert_entry_to_pending(client, entry, roster[3]).allowed is False


class TestEntryStatusWrites:
    """Test cases for the status mutation helpers."""

    def test_project_has_client(self):
        *_, roster = build_roster(with_client=True)
        assert project_has_client(roster) is True
        assert project_has_client(roster[:3]) is False
        assert project_has_client([]) is False

    def test_set_entry_status_tracks_approved_date(self):
        user = principal()
        entry = entry_snapshot()

        set_entry_status(entry, EntryStatus.APPROVED, user.id, NOW)
        assert entry.status == EntryStatus.APPROVED
        assert entry.approved_date == NOW
        assert entry.status_changed_at == NOW
        assert entry.status_changed_by == user.id

        set_entry_status(entry, EntryStatus.PENDING, user.id, NOW)
        assert entry.approved_date is None

    def test_approve_in_sheet_sets_mirror(self):
        user = principal()
        entry, link = entry_snapshot(), link_snapshot()

        approve_entry_in_sheet(entry, link, user.id, NOW)

        assert entry.status == EntryStatus.APPROVED
        assert link.approved_in_sheet is True
        assert link.approved_in_sheet_at == NOW
        assert link.approved_in_sheet_by == user.id

    def test_questioning_an_approved_entry_revokes_everything(self):
        approver, questioner = principal(), principal()
        entry, link = entry_snapshot(), link_snapshot()
        approve_entry_in_sheet(entry, link, approver.id, NOW)

        question_entry_in_sheet(entry, link, questioner.id, NOW)

        assert entry.status == EntryStatus.QUESTIONED
        assert entry.approved_date is None
        assert entry.status_changed_by == questioner.id
        assert (link.approved_in_sheet, link.approved_in_sheet_at, link.approved_in_sheet_by) == (False, None, None)

    def test_question_without_link_only_touches_entry(self):
        entry = entry_snapshot(status=EntryStatus.APPROVED)

        question_entry_in_sheet(entry, None, principal().id, NOW)

        assert entry.status == EntryStatus.QUESTIONED

    def test_clear_sheet_approval(self):
        link = link_snapshot()
        link.approved_in_sheet = True
        link.approved_in_sheet_at = NOW

        clear_sheet_approval(link)

        assert link.approved_in_sheet is False
        assert link.approved_in_sheet_at is None

    def test_revert_to_pending(self):
        entry = entry_snapshot(status=EntryStatus.QUESTIONED)

        revert_entry_to_pending(entry, principal().id, NOW)

        assert entry.status == EntryStatus.PENDING
        assert entry.approved_date is None
