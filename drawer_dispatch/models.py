from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Integer, Text, DateTime, ForeignKey, Index
from sqlalchemy.types import TypeDecorator
from datetime import datetime, timezone
import enum
import secrets
from drawer_dispatch.database import Base


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_command_code() -> str:
    """128 bits of randomness, URL safe."""
    return secrets.token_urlsafe(16)


class UTCDateTime(TypeDecorator):
    """Stores naive UTC, hands back timezone-aware UTC."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None or value.tzinfo is None:
            return value
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class CommandStatus(str, enum.Enum):
    PENDING = "PENDING"
    EXECUTED = "EXECUTED"
    FAILED = "FAILED"


class CommandAction(str, enum.Enum):
    OPEN = "OPEN"
    CLOSE = "CLOSE"
    LOCK = "LOCK"
    UNLOCK = "UNLOCK"


class DeviceStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    ERROR = "ERROR"


TERMINAL_STATUSES = (CommandStatus.EXECUTED.value, CommandStatus.FAILED.value)


class Device(Base):
    __tablename__ = "devices"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(128))
    location: Mapped[str | None] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(String(16), default=DeviceStatus.INACTIVE.value)
    drawer_count: Mapped[int] = mapped_column(Integer, default=4)
    last_poll: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, onupdate=utc_now
    )

    commands: Mapped[list["Command"]] = relationship(
        back_populates="device", cascade="all, delete-orphan"
    )


class Command(Base):
    __tablename__ = "commands"
    __table_args__ = (
        Index("ix_commands_device_status", "device_id", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(
        String(64), unique=True, index=True, default=generate_command_code
    )
    device_id: Mapped[str] = mapped_column(
        ForeignKey("devices.id", ondelete="CASCADE"), index=True
    )
    action: Mapped[str] = mapped_column(String(32))
    drawer: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(
        String(16), default=CommandStatus.PENDING.value, index=True
    )
    # set client side so that FIFO ordering keeps sub-second precision
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, index=True)
    executed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    failed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    device: Mapped["Device"] = relationship(back_populates="commands")
