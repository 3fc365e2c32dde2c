"""Configuration settings for the Laendle Finder scraper."""

from pathlib import Path
from typing import List, Optional, Literal
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

from ..models.property_models import ListingStatus
from ..models.scraper_models import ScrapeJobConfig


class ScraperSettings(BaseSettings):
    """HTTP fetching configuration."""

    # Rate limiting
    delay_between_requests: float = Field(default=1.0, ge=0, description="Minimum seconds between request starts")

    # Timeouts and retries
    request_timeout: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=3, ge=0)
    backoff_factor: float = Field(default=1.0, ge=0)
    max_backoff: float = Field(default=30.0, ge=0)

    # User agent rotation
    rotate_user_agents: bool = Field(default=False)

    model_config = SettingsConfigDict(env_prefix="SCRAPER_", extra="ignore")


class ETLSettings(BaseSettings):
    """Extraction and dataset configuration."""

    # Output settings
    output_path: str = Field(default="properties.csv")
    csv_encoding: str = Field(default="utf-8")

    # What to do with a property noun outside the known vocabulary
    unknown_property_type: Literal["empty", "free_text"] = Field(default="empty")

    model_config = SettingsConfigDict(env_prefix="ETL_", extra="ignore")


def default_jobs() -> List[ScrapeJobConfig]:
    """The two jobs the project was built for: sold plots and open listings."""
    return [
        ScrapeJobConfig(
            name="sold",
            scraper="vol",
            base_url="https://www.vol.at/themen/grund-und-boden",
            listing_status=ListingStatus.SOLD,
            max_pages=5,
        ),
        ScrapeJobConfig(
            name="available",
            scraper="laendleimmo",
            base_url="https://www.laendleimmo.at/kaufobjekt",
            listing_status=ListingStatus.AVAILABLE,
            max_pages=5,
        ),
    ]


class Settings(BaseSettings):
    """Main application settings."""

    # Environment
    environment: str = Field(default="development")

    # Logging
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)

    # Raw Cookie header value, one line
    cookie_file: Optional[str] = Field(default=None)

    # Component settings
    scraper: ScraperSettings = Field(default_factory=ScraperSettings)
    etl: ETLSettings = Field(default_factory=ETLSettings)

    jobs: List[ScrapeJobConfig] = Field(default_factory=default_jobs)

    model_config = SettingsConfigDict(extra="ignore", env_file=".env", env_file_encoding="utf-8")

    def resolve_jobs(self) -> List[ScrapeJobConfig]:
        """Jobs with the shared cookie and output path filled in where unset."""
        cookie = load_cookie(self.cookie_file)
        resolved = []
        for job in self.jobs:
            updates = {}
            if job.output_path is None:
                updates['output_path'] = self.etl.output_path
            if job.cookie is None and cookie is not None:
                updates['cookie'] = cookie
            resolved.append(job.model_copy(update=updates) if updates else job)
        return resolved


def load_cookie(path: Optional[str]) -> Optional[str]:
    """Read a raw Cookie header value from the first line of a file.

    Args:
        path: Cookie file path, or None for anonymous access

    Returns:
        Optional[str]: The header value, or None when no cookie is configured

    Raises:
        FileNotFoundError: If a path is given but the file does not exist
    """
    if not path:
        return None

    with Path(path).open(encoding="utf-8") as handle:
        first_line = handle.readline().strip()

    return first_line or None


# Global settings instance
settings = Settings()
