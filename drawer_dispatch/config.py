from pydantic import BaseModel, Field
import os
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseModel):
    database_url: str = Field(
        default=os.getenv("DATABASE_URL", "sqlite:///./data.db")
    )
    api_title: str = Field(
        default=os.getenv("API_TITLE", "Drawer Dispatch Service")
    )
    api_version: str = Field(
        default=os.getenv("API_VERSION", "0.1.0")
    )
    allowed_origins: list[str] = Field(
        default_factory=lambda: [
            o for o in os.getenv("ALLOWED_ORIGINS", "").split(",") if o
        ]
    )
    log_level: str = Field(
        default=os.getenv("LOG_LEVEL", "INFO")
    )
    # drawer bound given to devices registered without an explicit count
    default_drawer_count: int = Field(
        default=int(os.getenv("DEFAULT_DRAWER_COUNT", "4")), ge=1
    )
    cleanup_default_days: int = Field(
        default=int(os.getenv("CLEANUP_DEFAULT_DAYS", "30")), ge=1
    )

settings = Settings()
