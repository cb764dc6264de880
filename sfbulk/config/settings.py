# sfbulk/config/settings.py

# --- Standard Library Imports ---
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

# --- Pydantic V2 Imports ---
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sfbulk.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

MAX_PERIOD_DEPTH = 5


# --- Silverfin API Settings ---
class SilverfinSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env",
                                      case_sensitive=False,
                                      populate_by_name=True,
                                      extra='ignore')
    firm_id: str = Field(..., alias="SILVERFIN_FIRM_ID", min_length=1)
    token: str = Field(..., alias="SILVERFIN_TOKEN", min_length=1)
    export_pdf_id: str = Field(...,
                               alias="SILVERFIN_EXPORT_PDF_ID",
                               min_length=1)
    base_url: str = Field("https://live.getsilverfin.com",
                          alias="SILVERFIN_BASE_URL")
    request_timeout: float = Field(60.0,
                                   alias="SILVERFIN_REQUEST_TIMEOUT",
                                   gt=0)

    @field_validator('base_url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip('/')

    @property
    def api_root(self) -> str:
        """Firm scoped API root, e.g. https://live.getsilverfin.com/api/v4/f/13827"""
        return f"{self.base_url}/api/v4/f/{self.firm_id}"


# --- Export Run Settings ---
class ExportSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env",
                                      case_sensitive=False,
                                      populate_by_name=True,
                                      extra='ignore')
    output_dir: Path = Field(..., alias="EXPORT_OUTPUT_DIR")
    batch_size: int = Field(20, alias="EXPORT_BATCH_SIZE", ge=1)
    company_page_size: int = Field(200, alias="EXPORT_COMPANY_PAGE_SIZE", ge=1)
    periods_page_size: int = Field(200, alias="EXPORT_PERIODS_PAGE_SIZE", ge=1)
    poll_interval: float = Field(3.0, alias="EXPORT_POLL_INTERVAL", ge=0)
    max_poll_attempts: int = Field(200, alias="EXPORT_MAX_POLL_ATTEMPTS", ge=1)
    period_depth: int = Field(MAX_PERIOD_DEPTH,
                              alias="EXPORT_PERIOD_DEPTH",
                              ge=1,
                              le=MAX_PERIOD_DEPTH)
    min_closed_periods: int = Field(3,
                                    alias="EXPORT_MIN_CLOSED_PERIODS",
                                    ge=1,
                                    le=MAX_PERIOD_DEPTH)

    @field_validator('output_dir', mode='before')
    @classmethod
    def parse_output_dir(cls, v: Any) -> Any:
        if isinstance(v, str):
            if not v.strip():
                raise ValueError("output directory must not be empty")
            return Path(v)
        return v  # Let Pydantic handle other types

    @model_validator(mode='after')
    def check_min_against_depth(self) -> 'ExportSettings':
        if self.min_closed_periods > self.period_depth:
            raise ValueError(
                f"min_closed_periods ({self.min_closed_periods}) cannot exceed "
                f"period_depth ({self.period_depth})")
        return self


# --- Main App Settings ---
class AppSettings(BaseModel):
    silverfin: SilverfinSettings
    export: ExportSettings


# Every environment variable without a default.
REQUIRED_ENV_VARS = ("SILVERFIN_FIRM_ID", "SILVERFIN_TOKEN",
                     "SILVERFIN_EXPORT_PDF_ID", "EXPORT_OUTPUT_DIR")
_MISSING_ERROR_TYPES = {"missing", "string_too_short"}


def _collect_errors(exc: ValidationError, missing: List[str],
                    invalid: List[str]) -> None:
    for error in exc.errors():
        key = str(error["loc"][0]) if error["loc"] else ""
        if key.upper() in REQUIRED_ENV_VARS and (
                error["type"] in _MISSING_ERROR_TYPES
                or key.upper() == "EXPORT_OUTPUT_DIR"):
            missing.append(key.upper())
        else:
            invalid.append(f"{key or 'settings'}: {error['msg']}")


def load_settings(export_overrides: Optional[Dict[str, Any]] = None,
                  **env_kwargs: Any) -> AppSettings:
    """
    Builds the settings from the environment (and .env).

    Every sub-settings object is validated before raising, so a single
    ConfigError names every missing variable at once.

    Args:
        export_overrides: Field-name keyed values (e.g. from the CLI) that
                          take precedence over the environment.
        env_kwargs: Passed to every settings class, e.g. _env_file=None.
    """
    missing: List[str] = []
    invalid: List[str] = []
    silverfin = export = None
    # Keyed by alias so they outrank the matching environment variables.
    overrides = {
        ExportSettings.model_fields[k].alias or k: v
        for k, v in (export_overrides or {}).items() if v is not None
    }

    try:
        silverfin = SilverfinSettings(**env_kwargs)
    except ValidationError as e:
        _collect_errors(e, missing, invalid)
    try:
        export = ExportSettings(**env_kwargs, **overrides)
    except ValidationError as e:
        _collect_errors(e, missing, invalid)

    if missing:
        ordered = [k for k in REQUIRED_ENV_VARS if k in missing]
        raise ConfigError(
            f"Missing required environment variables: {', '.join(ordered)}",
            missing=ordered)
    if invalid:
        raise ConfigError(f"Invalid configuration: {'; '.join(invalid)}")

    logger.info("Application settings loaded successfully.")
    return AppSettings(silverfin=silverfin, export=export)
