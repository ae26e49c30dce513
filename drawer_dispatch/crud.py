import logging
from sqlalchemy.orm import Session
from sqlalchemy import select, func, update, delete
from datetime import datetime, timedelta
from drawer_dispatch import models, schemas
from drawer_dispatch.config import settings
from drawer_dispatch.errors import ValidationError, NotFoundError, InvalidStateError

logger = logging.getLogger(__name__)

VALID_ACTIONS = tuple(a.value for a in models.CommandAction)
VALID_STATUSES = tuple(s.value for s in models.CommandStatus)
DEFAULT_FAILURE_MESSAGE = "Command execution failed"


def _require_text(value, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    return value.strip()


# ----- Devices -----
def get_device(db: Session, device_id: str) -> models.Device | None:
    return db.get(models.Device, device_id)

def device_exists(db: Session, device_id: str) -> bool:
    return get_device(db, device_id) is not None

def drawer_bound(db: Session, device_id: str) -> int:
    device = get_device(db, device_id)
    if device is None:
        raise NotFoundError(f"Device {device_id} not found")
    return device.drawer_count

def create_device(db: Session, payload: schemas.DeviceCreate) -> models.Device:
    device_id = _require_text(payload.id, "Device ID")
    if device_exists(db, device_id):
        raise ValidationError(f"Device {device_id} already exists")

    device = models.Device(
        id=device_id,
        name=payload.name,
        location=payload.location,
        drawer_count=payload.drawer_count or settings.default_drawer_count,
    )
    db.add(device)
    db.commit()
    db.refresh(device)
    logger.info("Device %s registered with %d drawers", device.id, device.drawer_count)
    return device

def list_devices(db: Session, limit: int = 100, offset: int = 0):
    stmt = select(models.Device).order_by(models.Device.created_at.asc()).limit(limit).offset(offset)
    total = db.execute(select(func.count()).select_from(models.Device)).scalar_one()
    items = db.execute(stmt).scalars().all()
    return total, items

def update_device_status(db: Session, device_id: str, status: str) -> models.Device:
    device = get_device(db, device_id)
    if device is None:
        raise NotFoundError(f"Device {device_id} not found")
    device.status = status
    db.commit()
    db.refresh(device)
    return device

def update_device(db: Session, device_id: str, payload: schemas.DeviceUpdate) -> models.Device:
    # location is the only field that may be cleared with null
    changes = {
        field: value
        for field, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or field == "location"
    }
    if not changes:
        raise ValidationError("At least one field must be provided for update")
    if "name" in changes:
        changes["name"] = _require_text(changes["name"], "Device name")

    device = get_device(db, device_id)
    if device is None:
        raise NotFoundError(f"Device {device_id} not found")

    for field, value in changes.items():
        setattr(device, field, value)
    db.commit()
    db.refresh(device)
    logger.info("Device %s updated: %s", device_id, ", ".join(sorted(changes)))
    return device

def delete_device(db: Session, device_id: str) -> int:
    """Remove a device together with all of its commands. Returns the command count removed."""
    device = get_device(db, device_id)
    if device is None:
        raise NotFoundError(f"Device {device_id} not found")

    removed = len(device.commands)
    db.delete(device)
    db.commit()
    logger.info("Device %s deleted with %d commands", device_id, removed)
    return removed

def device_stats(db: Session) -> dict[str, int]:
    stmt = select(models.Device.status, func.count()).group_by(models.Device.status)
    counts = {status: count for status, count in db.execute(stmt).all()}
    return {
        "total": sum(counts.values()),
        "active": counts.get(models.DeviceStatus.ACTIVE.value, 0),
        "inactive": counts.get(models.DeviceStatus.INACTIVE.value, 0),
        "error": counts.get(models.DeviceStatus.ERROR.value, 0),
    }

def touch_last_poll(db: Session, device_id: str) -> bool:
    """Record device contact; unknown devices are ignored."""
    result = db.execute(
        update(models.Device)
        .where(models.Device.id == device_id)
        .values(last_poll=models.utc_now()),
        execution_options={"synchronize_session": False},
    )
    db.commit()
    return result.rowcount == 1


# ----- Commands -----
def create_command(
    db: Session,
    device_id: str,
    action: str,
    drawer: int | None = None,
) -> models.Command:
    device_id = _require_text(device_id, "Device ID")
    action = _require_text(action, "Action").upper()
    if action not in VALID_ACTIONS:
        raise ValidationError(
            f"Invalid action {action}. Must be one of: {', '.join(VALID_ACTIONS)}"
        )

    bound = drawer_bound(db, device_id)
    if drawer is not None:
        if isinstance(drawer, bool) or not isinstance(drawer, int) or not 1 <= drawer <= bound:
            raise ValidationError(f"Drawer must be an integer between 1 and {bound}")

    command = models.Command(
        device_id=device_id,
        action=action,
        drawer=drawer,
        status=models.CommandStatus.PENDING.value,
    )
    db.add(command)
    db.commit()
    db.refresh(command)
    logger.info(
        "Command %s created for device %s: %s drawer=%s",
        command.code, device_id, action, drawer,
    )
    return command

def get_command_by_code(db: Session, code: str) -> models.Command:
    code = _require_text(code, "Command code")
    command = db.execute(
        select(models.Command).where(models.Command.code == code)
    ).scalar_one_or_none()
    if command is None:
        raise NotFoundError(f"Command with code {code} not found")
    return command

def next_pending_command(db: Session, device_id: str) -> models.Command | None:
    """Oldest PENDING command for the device. Does not change its status.

    A blank device id owns no commands, so it polls empty rather than failing.
    """
    device_id = device_id.strip() if isinstance(device_id, str) else ""
    if not device_id:
        logger.debug("Poll with blank device id")
        return None
    stmt = (
        select(models.Command)
        .where(
            models.Command.device_id == device_id,
            models.Command.status == models.CommandStatus.PENDING.value,
        )
        .order_by(models.Command.created_at.asc(), models.Command.id.asc())
        .limit(1)
    )
    command = db.execute(stmt).scalar_one_or_none()
    if command is None:
        logger.debug("No pending commands for device %s", device_id)
    else:
        logger.info("Delivering command %s to device %s", command.code, device_id)
    return command

def _transition(db: Session, code: str, target: models.CommandStatus, **values) -> models.Command:
    # check-and-set in one statement; a racing confirmation sees rowcount 0
    code = _require_text(code, "Command code")
    result = db.execute(
        update(models.Command)
        .where(
            models.Command.code == code,
            models.Command.status == models.CommandStatus.PENDING.value,
        )
        .values(status=target.value, **values),
        execution_options={"synchronize_session": False},
    )
    if result.rowcount != 1:
        db.rollback()
        current = db.execute(
            select(models.Command.status).where(models.Command.code == code)
        ).scalar_one_or_none()
        if current is None:
            raise NotFoundError(f"Command with code {code} not found")
        logger.warning(
            "Rejected %s for command %s: status is %s", target.value, code, current
        )
        raise InvalidStateError(
            f"Command with code {code} is not in PENDING status (current: {current})",
            current_status=current,
        )
    db.commit()
    return get_command_by_code(db, code)

def mark_executed(db: Session, code: str) -> models.Command:
    command = _transition(
        db, code, models.CommandStatus.EXECUTED, executed_at=models.utc_now()
    )
    logger.info("Command %s executed by device %s", command.code, command.device_id)
    return command

def mark_failed(db: Session, code: str, error_message: str | None = None) -> models.Command:
    message = error_message.strip() if error_message else ""
    command = _transition(
        db,
        code,
        models.CommandStatus.FAILED,
        failed_at=models.utc_now(),
        error_message=message or DEFAULT_FAILURE_MESSAGE,
    )
    logger.warning(
        "Command %s failed on device %s: %s",
        command.code, command.device_id, command.error_message,
    )
    return command

def list_by_device(
    db: Session,
    device_id: str,
    status: str | None = None,
) -> list[models.Command]:
    device_id = _require_text(device_id, "Device ID")
    stmt = select(models.Command).where(models.Command.device_id == device_id)

    if status:
        status = status.strip().upper()
        if status not in VALID_STATUSES:
            raise ValidationError(
                f"Invalid status {status}. Must be one of: {', '.join(VALID_STATUSES)}"
            )
        stmt = stmt.where(models.Command.status == status)

    stmt = stmt.order_by(models.Command.created_at.desc(), models.Command.id.desc())
    return list(db.execute(stmt).scalars().all())

def command_stats(db: Session, device_id: str | None = None) -> dict[str, int]:
    stmt = select(models.Command.status, func.count()).group_by(models.Command.status)
    if device_id:
        stmt = stmt.where(models.Command.device_id == device_id)

    counts = {status: count for status, count in db.execute(stmt).all()}
    stats = {
        "pending": counts.get(models.CommandStatus.PENDING.value, 0),
        "executed": counts.get(models.CommandStatus.EXECUTED.value, 0),
        "failed": counts.get(models.CommandStatus.FAILED.value, 0),
    }
    stats["total"] = sum(counts.values())
    return stats

def cleanup_older_than(db: Session, days: int, now: datetime | None = None) -> int:
    """Delete EXECUTED/FAILED commands created more than ``days`` ago.

    PENDING commands are kept whatever their age.
    """
    if isinstance(days, bool) or not isinstance(days, int) or days < 1:
        raise ValidationError("olderThanDays must be at least 1")

    cutoff = (now or models.utc_now()) - timedelta(days=days)
    result = db.execute(
        delete(models.Command).where(
            models.Command.created_at < cutoff,
            models.Command.status.in_(models.TERMINAL_STATUSES),
        ),
        execution_options={"synchronize_session": False},
    )
    db.commit()
    logger.info("Cleaned up %d commands older than %d days", result.rowcount, days)
    return result.rowcount
