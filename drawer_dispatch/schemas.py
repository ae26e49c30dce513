from pydantic import BaseModel, Field, StrictInt
from datetime import datetime

# ----- Devices -----
class DeviceCreate(BaseModel):
    id: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=128)
    location: str | None = Field(default=None, max_length=128)
    drawer_count: int | None = Field(default=None, ge=1)

class DeviceStatusUpdate(BaseModel):
    status: str = Field(pattern="^(ACTIVE|INACTIVE|ERROR)$")

class DeviceUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=128)
    location: str | None = Field(default=None, max_length=128)
    status: str | None = Field(default=None, pattern="^(ACTIVE|INACTIVE|ERROR)$")
    drawer_count: int | None = Field(default=None, ge=1)

class DeviceStats(BaseModel):
    total: int
    active: int
    inactive: int
    error: int

class DeviceOut(BaseModel):
    id: str
    name: str
    location: str | None = None
    status: str  # "ACTIVE", "INACTIVE", "ERROR"
    drawer_count: int
    last_poll: datetime | None = None
    created_at: datetime

    class Config:
        from_attributes = True

# ----- Commands (backend -> drawer unit) -----
class CommandCreate(BaseModel):
    # accepts any string so unknown actions reach the store's own validation
    action: str
    # JSON true must not pass as drawer 1
    drawer: StrictInt | None = None

class CommandFailure(BaseModel):
    """Optional body a device sends when it could not perform a command"""
    error_message: str | None = Field(default=None, max_length=1024)

class CommandOut(BaseModel):
    id: int
    code: str
    device_id: str
    action: str
    drawer: int | None = None
    status: str  # "PENDING", "EXECUTED", "FAILED"
    created_at: datetime
    executed_at: datetime | None = None
    failed_at: datetime | None = None
    error_message: str | None = None

    class Config:
        from_attributes = True

class OpenDrawerResult(BaseModel):
    success: bool = True
    message: str
    code: str

class CommandResult(BaseModel):
    """Response after a device confirms a command"""
    success: bool = True
    message: str
    command: CommandOut

class CommandList(BaseModel):
    device_id: str
    count: int
    items: list[CommandOut]

class CommandStats(BaseModel):
    device_id: str | None = None
    pending: int
    executed: int
    failed: int
    total: int

class CleanupResult(BaseModel):
    success: bool = True
    deleted: int
    older_than_days: int

# ----- Common -----
class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: str

class HealthCheck(BaseModel):
    status: str
    timestamp: datetime
    service: str
    version: str
