from datetime import timedelta

import pytest
from sqlalchemy import update

from drawer_dispatch import crud, models, schemas
from drawer_dispatch.errors import InvalidStateError, NotFoundError, ValidationError


def _age(db, command, days):
    db.execute(
        update(models.Command)
        .where(models.Command.id == command.id)
        .values(created_at=models.utc_now() - timedelta(days=days))
    )
    db.commit()


# ----- create -----
def test_create_command_starts_pending(db, device):
    command = crud.create_command(db, "D1", "OPEN", drawer=1)

    assert command.status == "PENDING"
    assert command.device_id == "D1"
    assert command.action == "OPEN"
    assert command.drawer == 1
    assert command.code
    assert command.created_at is not None
    assert command.created_at.tzinfo is not None
    assert command.executed_at is None
    assert command.failed_at is None
    assert command.error_message is None


def test_create_command_normalises_action(db, device):
    command = crud.create_command(db, " D1 ", " unlock ")
    assert command.action == "UNLOCK"
    assert command.device_id == "D1"
    assert command.drawer is None


def test_codes_are_unique(db, device):
    codes = {crud.create_command(db, "D1", "LOCK").code for _ in range(50)}
    assert len(codes) == 50


def test_code_is_distinct_from_internal_id(db, device):
    command = crud.create_command(db, "D1", "OPEN", drawer=2)
    assert command.code != str(command.id)


@pytest.mark.parametrize("device_id", ["", "   ", None])
def test_create_command_requires_device_id(db, device, device_id):
    with pytest.raises(ValidationError):
        crud.create_command(db, device_id, "OPEN")


@pytest.mark.parametrize("action", ["", "EXPLODE", "open_drawer", None])
def test_create_command_rejects_unknown_action(db, device, action):
    with pytest.raises(ValidationError):
        crud.create_command(db, "D1", action)


@pytest.mark.parametrize("drawer", [0, -1, 5, True])
def test_create_command_rejects_drawer_out_of_range(db, device, drawer):
    with pytest.raises(ValidationError):
        crud.create_command(db, "D1", "OPEN", drawer=drawer)


def test_drawer_bound_comes_from_device(db, device):
    assert crud.drawer_bound(db, "D1") == 4
    assert crud.create_command(db, "D1", "OPEN", drawer=4).drawer == 4


def test_create_command_for_unknown_device(db):
    with pytest.raises(NotFoundError):
        crud.create_command(db, "ghost", "OPEN", drawer=1)


def test_rejected_create_persists_nothing(db, device):
    with pytest.raises(ValidationError):
        crud.create_command(db, "D1", "OPEN", drawer=9)
    assert crud.command_stats(db, "D1")["total"] == 0


# ----- next pending -----
def test_next_pending_on_idle_device_is_empty(db, device):
    assert crud.next_pending_command(db, "D1") is None


def test_next_pending_on_unregistered_device_is_empty(db):
    assert crud.next_pending_command(db, "nobody") is None


def test_next_pending_is_fifo(db, device):
    first = crud.create_command(db, "D1", "OPEN", drawer=1)
    second = crud.create_command(db, "D1", "CLOSE", drawer=1)

    assert crud.next_pending_command(db, "D1").code == first.code
    crud.mark_executed(db, first.code)
    assert crud.next_pending_command(db, "D1").code == second.code


def test_next_pending_breaks_created_at_ties_by_insertion_order(db, device):
    first = crud.create_command(db, "D1", "OPEN", drawer=1)
    second = crud.create_command(db, "D1", "CLOSE", drawer=1)
    same_instant = models.utc_now() - timedelta(minutes=1)
    db.execute(
        update(models.Command)
        .where(models.Command.id.in_([first.id, second.id]))
        .values(created_at=same_instant)
    )
    db.commit()

    assert first.id < second.id
    assert crud.next_pending_command(db, "D1").code == first.code
    crud.mark_failed(db, first.code, "jam")
    assert crud.next_pending_command(db, "D1").code == second.code


@pytest.mark.parametrize("device_id", ["", "   ", None])
def test_next_pending_with_blank_device_is_empty(db, device, device_id):
    crud.create_command(db, "D1", "OPEN", drawer=1)
    assert crud.next_pending_command(db, device_id) is None


def test_next_pending_does_not_change_status(db, device):
    command = crud.create_command(db, "D1", "OPEN", drawer=1)

    for _ in range(3):
        polled = crud.next_pending_command(db, "D1")
        assert polled.code == command.code
        assert polled.status == "PENDING"


def test_next_pending_is_scoped_to_device(db, device):
    crud.create_device(db, schemas.DeviceCreate(id="D2", name="Kitchen unit"))
    other = crud.create_command(db, "D2", "LOCK")

    assert crud.next_pending_command(db, "D1") is None
    assert crud.next_pending_command(db, "D2").code == other.code


# ----- transitions -----
def test_mark_executed(db, device):
    command = crud.create_command(db, "D1", "OPEN", drawer=1)

    executed = crud.mark_executed(db, command.code)

    assert executed.status == "EXECUTED"
    assert executed.executed_at is not None
    assert executed.failed_at is None
    assert executed.error_message is None


def test_mark_failed_stores_message(db, device):
    command = crud.create_command(db, "D1", "OPEN", drawer=1)

    failed = crud.mark_failed(db, command.code, "jam")

    assert failed.status == "FAILED"
    assert failed.failed_at is not None
    assert failed.executed_at is None
    assert failed.error_message == "jam"


@pytest.mark.parametrize("message", [None, "", "  "])
def test_mark_failed_default_message(db, device, message):
    command = crud.create_command(db, "D1", "CLOSE")
    failed = crud.mark_failed(db, command.code, message)
    assert failed.error_message == crud.DEFAULT_FAILURE_MESSAGE


@pytest.mark.parametrize(
    "first, second",
    [
        ("executed", "executed"),
        ("executed", "failed"),
        ("failed", "executed"),
        ("failed", "failed"),
    ],
)
def test_single_terminal_transition(db, device, first, second):
    command = crud.create_command(db, "D1", "OPEN", drawer=1)
    transitions = {
        "executed": lambda: crud.mark_executed(db, command.code),
        "failed": lambda: crud.mark_failed(db, command.code, "jam"),
    }

    resolved = transitions[first]()
    snapshot = (resolved.status, resolved.executed_at, resolved.failed_at, resolved.error_message)
    with pytest.raises(InvalidStateError) as excinfo:
        transitions[second]()

    assert excinfo.value.current_status == snapshot[0]
    after = crud.get_command_by_code(db, command.code)
    assert (after.status, after.executed_at, after.failed_at, after.error_message) == snapshot


@pytest.mark.parametrize("transition", [crud.mark_executed, crud.mark_failed])
def test_transition_unknown_code(db, device, transition):
    with pytest.raises(NotFoundError):
        transition(db, "no-such-code")


def test_get_command_by_code(db, device):
    command = crud.create_command(db, "D1", "LOCK")
    assert crud.get_command_by_code(db, command.code).id == command.id
    with pytest.raises(NotFoundError):
        crud.get_command_by_code(db, "missing")


# ----- listing and stats -----
def test_list_by_device_newest_first(db, device):
    created = [crud.create_command(db, "D1", "OPEN", drawer=i) for i in (1, 2, 3)]

    listed = crud.list_by_device(db, "D1")

    assert [c.code for c in listed] == [c.code for c in reversed(created)]


def test_list_by_device_status_filter(db, device):
    done = crud.create_command(db, "D1", "OPEN", drawer=1)
    crud.create_command(db, "D1", "CLOSE", drawer=1)
    crud.mark_executed(db, done.code)

    executed = crud.list_by_device(db, "D1", "executed")

    assert [c.code for c in executed] == [done.code]
    assert len(crud.list_by_device(db, "D1", "PENDING")) == 1


def test_list_by_device_rejects_unknown_status(db, device):
    with pytest.raises(ValidationError):
        crud.list_by_device(db, "D1", "LOST")


def test_stats(db, device):
    crud.create_device(db, schemas.DeviceCreate(id="D2", name="Kitchen unit"))
    a = crud.create_command(db, "D1", "OPEN", drawer=1)
    b = crud.create_command(db, "D1", "OPEN", drawer=2)
    crud.create_command(db, "D1", "OPEN", drawer=3)
    crud.create_command(db, "D2", "LOCK")
    crud.mark_executed(db, a.code)
    crud.mark_failed(db, b.code)

    assert crud.command_stats(db, "D1") == {"pending": 1, "executed": 1, "failed": 1, "total": 3}
    assert crud.command_stats(db) == {"pending": 2, "executed": 1, "failed": 1, "total": 4}
    assert crud.command_stats(db, "D9") == {"pending": 0, "executed": 0, "failed": 0, "total": 0}


# ----- cleanup -----
def test_cleanup_never_removes_pending(db, device):
    stuck = crud.create_command(db, "D1", "OPEN", drawer=1)
    _age(db, stuck, 365)

    assert crud.cleanup_older_than(db, 1) == 0
    assert crud.get_command_by_code(db, stuck.code).status == "PENDING"


def test_cleanup_removes_old_terminal_commands_only(db, device):
    old_done = crud.create_command(db, "D1", "OPEN", drawer=1)
    old_failed = crud.create_command(db, "D1", "OPEN", drawer=2)
    recent_done = crud.create_command(db, "D1", "OPEN", drawer=3)
    crud.mark_executed(db, old_done.code)
    crud.mark_failed(db, old_failed.code, "jam")
    crud.mark_executed(db, recent_done.code)
    _age(db, old_done, 40)
    _age(db, old_failed, 31)
    _age(db, recent_done, 5)

    assert crud.cleanup_older_than(db, 30) == 2

    remaining = {c.code for c in crud.list_by_device(db, "D1")}
    assert remaining == {recent_done.code}


def test_cleanup_is_idempotent(db, device):
    command = crud.create_command(db, "D1", "CLOSE")
    crud.mark_executed(db, command.code)
    later = models.utc_now() + timedelta(days=10)

    assert crud.cleanup_older_than(db, 7, now=later) == 1
    assert crud.cleanup_older_than(db, 7, now=later) == 0


@pytest.mark.parametrize("days", [0, -3, True])
def test_cleanup_requires_at_least_one_day(db, days):
    with pytest.raises(ValidationError):
        crud.cleanup_older_than(db, days)


# ----- device registry -----
def test_update_device_changes_only_given_fields(db, device):
    updated = crud.update_device(db, "D1", schemas.DeviceUpdate(location="Garage", drawer_count=2))

    assert updated.location == "Garage"
    assert updated.drawer_count == 2
    assert updated.name == "Hallway unit"
    with pytest.raises(ValidationError):
        crud.create_command(db, "D1", "OPEN", drawer=3)


def test_update_device_rejects_empty_update(db, device):
    with pytest.raises(ValidationError):
        crud.update_device(db, "D1", schemas.DeviceUpdate())
    with pytest.raises(NotFoundError):
        crud.update_device(db, "D9", schemas.DeviceUpdate(name="Ghost"))


def test_delete_device_cascades_commands(db, device):
    a = crud.create_command(db, "D1", "OPEN", drawer=1)
    b = crud.create_command(db, "D1", "CLOSE", drawer=1)
    crud.mark_executed(db, a.code)
    codes = [a.code, b.code]

    assert crud.delete_device(db, "D1") == 2

    assert not crud.device_exists(db, "D1")
    for code in codes:
        with pytest.raises(NotFoundError):
            crud.get_command_by_code(db, code)
    with pytest.raises(NotFoundError):
        crud.delete_device(db, "D1")


def test_device_stats(db, device):
    crud.create_device(db, schemas.DeviceCreate(id="D2", name="Kitchen unit"))
    crud.update_device_status(db, "D2", "ACTIVE")

    assert crud.device_stats(db) == {"total": 2, "active": 1, "inactive": 1, "error": 0}
