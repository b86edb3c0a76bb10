import os
import logging
from pydantic import BaseModel, Field
from typing import List
from dotenv import load_dotenv

load_dotenv()

class Config(BaseModel):
    app_name: str = "Salary Structure Engine"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"
    version: str = "1.0.0"
    request_id_header: str = "X-Request-ID"

    # Database (read-only use: pay component catalog and stored structures)
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./database.db")

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Money output precision (minor units); rounding is always ROUND_HALF_UP
    money_decimal_places: int = int(os.getenv("MONEY_DECIMAL_PLACES", "2"))

    # Catalog is loaded once at startup and only reloaded on request
    load_catalog_on_startup: bool = os.getenv("LOAD_CATALOG_ON_STARTUP", "true").lower() == "true"

    # CORS: comma-separated origins loaded from env.
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            o.strip()
            for o in os.getenv(
                "CORS_ORIGINS",
                "http://localhost:3000,http://127.0.0.1:3000",
            ).split(",")
            if o.strip()
        ]
    )

settings = Config()

_logger = logging.getLogger(__name__)
if settings.money_decimal_places < 0 or settings.money_decimal_places > 6:
    raise RuntimeError(
        f"FATAL: MONEY_DECIMAL_PLACES must be between 0 and 6, got {settings.money_decimal_places}."
    )
if settings.environment != "development" and settings.database_url.startswith("sqlite:///./"):
    _logger.warning("Using the local SQLite database outside development.")
