"""Configuration management."""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings pulled from environment variables."""

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Logging format (plain or json)")

    # Default rebuild parameters
    default_box_x: float = Field(default=10.0, ge=2.0, description="Default box size along x")
    default_box_y: float = Field(default=10.0, ge=2.0, description="Default box size along y")
    default_box_z: float = Field(default=10.0, ge=2.0, description="Default box size along z")
    default_seed_count: int = Field(default=12, ge=1, description="Default number of seed points")
    default_seed_value: int = Field(default=1, ge=0, description="Default PRNG seed")
    default_density: float = Field(default=24.0, ge=6.0, description="Default grid cells along the longest axis")
    default_smoothing: int = Field(default=2, ge=0, description="Default Laplacian smoothing passes")

    # Engine tuning
    history_limit: int = Field(default=50, ge=1, description="Maximum undo/redo snapshots")
    weld_tolerance: float = Field(default=1e-4, gt=0.0, description="Vertex weld tolerance")
    smoothing_lambda: float = Field(default=0.5, gt=0.0, le=1.0, description="Laplacian smoothing step")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "MVORONOI_"
        extra = "ignore"


settings = Settings()
