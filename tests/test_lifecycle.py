import pytest

from careportal.services.day_lock import (
    NEEDS_CONFIRMATION_MESSAGE,
    DayLockState,
    EditorMode,
    editor_message,
    resolve_editor_mode,
)
from careportal.services.lifecycle import (
    AckAction,
    AssignmentStatus,
    normalize_status,
    parse_ack_action,
    permissions_for,
    status_label,
)


def _unlocked() -> DayLockState:
    return DayLockState(employee_id="emp-1", day=None)


@pytest.mark.parametrize("status", ["PLANNED", "CANCELLED", "canceled", "planned"])
def test_planned_and_cancelled_allow_nothing(status: str) -> None:
    permissions = permissions_for(status)

    assert permissions.ack_allowed is False
    assert permissions.can_add_time_entry is False
    assert permissions.can_sign is False


def test_assigned_allows_ack_but_not_entries() -> None:
    permissions = permissions_for("assigned")

    assert permissions.status is AssignmentStatus.ASSIGNED
    assert permissions.ack_allowed is True
    assert permissions.can_add_time_entry is False

    mode = resolve_editor_mode(False, permissions, _unlocked())
    assert mode is EditorMode.NEEDS_CONFIRMATION
    assert editor_message(mode) == NEEDS_CONFIRMATION_MESSAGE


@pytest.mark.parametrize("status", ["CONFIRMED", "DONE", "completed"])
def test_working_statuses_allow_sign_and_entries(status: str) -> None:
    permissions = permissions_for(status)

    assert permissions.can_sign is True
    assert permissions.signature_allowed is True
    assert permissions.can_add_time_entry is True
    assert permissions.can_mark_done is True
    assert permissions.ack_allowed is False
    assert resolve_editor_mode(False, permissions, _unlocked()) is EditorMode.EDITABLE


def test_unknown_status_is_a_display_state() -> None:
    assert normalize_status("ARCHIVED") is AssignmentStatus.UNKNOWN
    assert normalize_status(None) is AssignmentStatus.UNKNOWN
    assert status_label("whatever") == "—"
    assert permissions_for("ARCHIVED").ack_allowed is False


def test_labels_and_aliases() -> None:
    assert status_label("confirmed") == "Bestätigt"
    assert normalize_status("COMPLETED") is AssignmentStatus.DONE
    assert permissions_for("DONE").is_terminal is True
    assert permissions_for("DONE").to_dict()["label"] == "Erledigt"


def test_parse_ack_action() -> None:
    assert parse_ack_action("confirm") is AckAction.CONFIRM
    assert parse_ack_action(" DECLINE ") is AckAction.DECLINE
    with pytest.raises(ValueError):
        parse_ack_action("MAYBE")
