from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session
from drawer_dispatch import schemas, crud
from drawer_dispatch.config import settings
from drawer_dispatch.database import get_db

router = APIRouter(prefix="/commands", tags=["commands"])

# static paths are declared before "/{code}" so they are not captured by it

@router.get("/stats", response_model=schemas.CommandStats)
def command_stats(db: Session = Depends(get_db)):
    return schemas.CommandStats(**crud.command_stats(db))

@router.get("/stats/{device_id}", response_model=schemas.CommandStats)
def device_command_stats(device_id: str, db: Session = Depends(get_db)):
    return schemas.CommandStats(device_id=device_id, **crud.command_stats(db, device_id))

@router.delete("/cleanup", response_model=schemas.CleanupResult)
def cleanup_commands(
    older_than_days: int = Query(default=settings.cleanup_default_days, ge=1),
    db: Session = Depends(get_db)
):
    """Remove EXECUTED/FAILED commands older than the given age. PENDING ones are kept."""
    deleted = crud.cleanup_older_than(db, older_than_days)
    return schemas.CleanupResult(deleted=deleted, older_than_days=older_than_days)

@router.get("/{code}", response_model=schemas.CommandOut)
def get_command(code: str, db: Session = Depends(get_db)):
    return schemas.CommandOut.model_validate(crud.get_command_by_code(db, code))

@router.post("/{code}/execute", response_model=schemas.CommandResult)
def mark_command_executed(code: str, db: Session = Depends(get_db)):
    """
    The drawer unit calls this after performing the command it received
    from next-command. A second confirmation for the same code is rejected
    with 409 and leaves the command untouched.
    """
    command = crud.mark_executed(db, code)
    return schemas.CommandResult(
        message="Command marked as executed successfully",
        command=schemas.CommandOut.model_validate(command),
    )

@router.post("/{code}/fail", response_model=schemas.CommandResult)
def mark_command_failed(
    code: str,
    payload: schemas.CommandFailure | None = Body(default=None),
    db: Session = Depends(get_db)
):
    """The drawer unit reports that it could not perform the command."""
    error_message = payload.error_message if payload else None
    command = crud.mark_failed(db, code, error_message)
    return schemas.CommandResult(
        message="Command marked as failed",
        command=schemas.CommandOut.model_validate(command),
    )
