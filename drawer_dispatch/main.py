import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from drawer_dispatch import schemas
from drawer_dispatch.config import settings
from drawer_dispatch.database import init_db
from drawer_dispatch.errors import DispatchError, ValidationError, NotFoundError, InvalidStateError
from drawer_dispatch.logging_config import configure_logging
from drawer_dispatch.routers import commands, devices

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    ValidationError: 400,
    NotFoundError: 404,
    InvalidStateError: 409,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)
    init_db()
    logger.info("%s %s started", settings.api_title, settings.api_version)
    yield


app = FastAPI(title=settings.api_title, version=settings.api_version, lifespan=lifespan)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DispatchError)
async def dispatch_error_handler(request: Request, exc: DispatchError):
    status_code = ERROR_STATUS_CODES.get(type(exc), 400)
    logger.info("%s %s -> %d %s: %s", request.method, request.url.path, status_code, exc.kind, exc.message)
    return JSONResponse(
        status_code=status_code,
        content=schemas.ErrorResponse(error=exc.kind, message=exc.message).model_dump(),
    )


app.include_router(devices.router)
app.include_router(commands.router)


# ----- Health Check -----
@app.get("/health", response_model=schemas.HealthCheck)
def health():
    return schemas.HealthCheck(
        status="ok",
        timestamp=datetime.now(timezone.utc),
        service=settings.api_title,
        version=settings.api_version,
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=10000)
