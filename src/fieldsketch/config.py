"""Configuration management using Pydantic settings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables (FIELDSKETCH_*)."""

    model_config = SettingsConfigDict(
        env_prefix="FIELDSKETCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    debug: bool = False

    # Geometry
    earth_radius_m: float = 6_378_137.0
    km_threshold_m: float = 1000.0

    # Undo history depth per session (0 = unbounded)
    history_limit: int = Field(default=0, ge=0)

    # Default style for newly drawn fields
    default_stroke_color: str = "#00C853"
    default_fill_color: str = "#00C853"
    default_stroke_weight: float = 2.0
    default_fill_opacity: float = 0.3
    default_field_name: str = "Field"
    default_path_name: str = "Distance"

    # Edge label placement, in degrees of lat/lng offset from the edge midpoint
    label_offset_deg: float = 0.0005
    label_offset_long_deg: float = 0.0008
    label_offset_short_deg: float = 0.0003
    label_reference_zoom: float = 15.0
    label_zoom_factor: float = 1.3

    # JSON field store
    storage_path: Path = Path("~/.local/share/fieldsketch")


settings = Settings()
