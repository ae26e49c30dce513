from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session
from drawer_dispatch import schemas, crud
from drawer_dispatch.database import get_db
from drawer_dispatch.errors import NotFoundError

router = APIRouter(prefix="/devices", tags=["devices"])

@router.get("", response_model=list[schemas.DeviceOut])
def list_devices(
    limit: int = Query(default=100, le=1000),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db)
):
    _, devices = crud.list_devices(db, limit=limit, offset=offset)
    return [schemas.DeviceOut.model_validate(d) for d in devices]

@router.post("", response_model=schemas.DeviceOut, status_code=201)
def create_device(device: schemas.DeviceCreate, db: Session = Depends(get_db)):
    return schemas.DeviceOut.model_validate(crud.create_device(db, device))

@router.get("/stats", response_model=schemas.DeviceStats)
def device_stats(db: Session = Depends(get_db)):
    """Device counts by status"""
    return schemas.DeviceStats(**crud.device_stats(db))

@router.get("/{device_id}", response_model=schemas.DeviceOut)
def get_device(device_id: str, db: Session = Depends(get_db)):
    device = crud.get_device(db, device_id)
    if device is None:
        raise NotFoundError(f"Device {device_id} not found")
    return schemas.DeviceOut.model_validate(device)

@router.put("/{device_id}", response_model=schemas.DeviceOut)
def update_device(
    device_id: str,
    payload: schemas.DeviceUpdate,
    db: Session = Depends(get_db)
):
    return schemas.DeviceOut.model_validate(crud.update_device(db, device_id, payload))

@router.delete("/{device_id}", status_code=204)
def delete_device(device_id: str, db: Session = Depends(get_db)):
    """Unregister a device. Its commands, pending or not, are deleted with it."""
    crud.delete_device(db, device_id)
    return Response(status_code=204)

@router.patch("/{device_id}/status", response_model=schemas.DeviceOut)
def update_device_status(
    device_id: str,
    payload: schemas.DeviceStatusUpdate,
    db: Session = Depends(get_db)
):
    device = crud.update_device_status(db, device_id, payload.status)
    return schemas.DeviceOut.model_validate(device)

@router.post("/{device_id}/commands", response_model=schemas.CommandOut, status_code=201)
def queue_command(
    device_id: str,
    payload: schemas.CommandCreate,
    db: Session = Depends(get_db)
):
    """
    Queue a command for a drawer unit. Several commands may be pending at once;
    the device receives them one at a time, oldest first.
    """
    command = crud.create_command(db, device_id, payload.action, payload.drawer)
    return schemas.CommandOut.model_validate(command)

@router.post("/{device_id}/opendrawer/{drawer_number}", response_model=schemas.OpenDrawerResult)
def open_drawer(
    device_id: str,
    drawer_number: int,
    db: Session = Depends(get_db)
):
    """Shortcut that queues an OPEN for one drawer and hands back the command code"""
    command = crud.create_command(db, device_id, "OPEN", drawer_number)
    return schemas.OpenDrawerResult(
        message=f"Drawer {drawer_number} open command queued successfully",
        code=command.code,
    )

@router.get("/{device_id}/commands", response_model=schemas.CommandList)
def list_device_commands(
    device_id: str,
    status: str | None = None,
    db: Session = Depends(get_db)
):
    """Command history for a device, newest first"""
    commands = crud.list_by_device(db, device_id, status)
    return schemas.CommandList(
        device_id=device_id,
        count=len(commands),
        items=[schemas.CommandOut.model_validate(c) for c in commands],
    )

@router.get(
    "/{device_id}/next-command",
    response_model=schemas.CommandOut,
    responses={204: {"description": "No pending command"}},
)
def poll_next_command(
    device_id: str,
    db: Session = Depends(get_db)
):
    """
    Drawer units poll this endpoint on a fixed interval.

    Returns the oldest pending command, or 204 when there is nothing to do.
    The command stays PENDING until the device confirms it by code via
    POST /commands/{code}/execute or POST /commands/{code}/fail, so a
    repeated poll before confirmation returns the same command again.
    """
    crud.touch_last_poll(db, device_id)

    command = crud.next_pending_command(db, device_id)
    if command is None:
        return Response(status_code=204)
    return schemas.CommandOut.model_validate(command)
