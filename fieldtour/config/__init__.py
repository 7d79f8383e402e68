"""
Configuration module for fieldtour.

Centralizes all configuration settings including feature flags,
database URLs and planning defaults. Routing service settings live in
``fieldtour.config.osrm``.
"""

import os

from fieldtour.config.osrm import OSRMConfig, osrm_config


class Config:
    """Application configuration loaded from environment variables."""

    # Feature Flags
    USE_DATABASE: bool = os.getenv("USE_DATABASE", "true").lower() == "true"
    ROUTING_ENABLED: bool = os.getenv("ROUTING_ENABLED", "true").lower() == "true"

    # Database Configuration
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///fieldtour.db")
    SQLALCHEMY_ECHO: bool = os.getenv("SQLALCHEMY_ECHO", "false").lower() == "true"

    # Planning defaults
    # Used when no device position is available and for sites with broken geometry.
    FALLBACK_LAT: float = float(os.getenv("FALLBACK_LAT", "33.5731"))
    FALLBACK_LON: float = float(os.getenv("FALLBACK_LON", "-7.5898"))
    PLANNING_SPEED_KMH: float = float(os.getenv("PLANNING_SPEED_KMH", "30.0"))

    @classmethod
    def fallback_position(cls):
        """Return the configured fallback coordinate as a ``Coordinates``."""
        from fieldtour.models import Coordinates
        return Coordinates(lat=cls.FALLBACK_LAT, lon=cls.FALLBACK_LON)

    @classmethod
    def get_config_dict(cls) -> dict:
        """Return configuration as dictionary (for debugging)."""
        return {
            "USE_DATABASE": cls.USE_DATABASE,
            "ROUTING_ENABLED": cls.ROUTING_ENABLED,
            "DATABASE_URL": cls.DATABASE_URL.replace("//", "//***@") if "@" in cls.DATABASE_URL else cls.DATABASE_URL,
            "FALLBACK": (cls.FALLBACK_LAT, cls.FALLBACK_LON),
            "PLANNING_SPEED_KMH": cls.PLANNING_SPEED_KMH,
            "OSRM_BASE_URL": osrm_config.BASE_URL,
        }


# Global configuration instance
config = Config()

__all__ = ["Config", "config", "OSRMConfig", "osrm_config"]
