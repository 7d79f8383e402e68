"""
Configuration for the OSRM (Open Source Routing Machine) collaborator.
"""

import os


class OSRMConfig:
    """Configuration class for OSRM integration."""

    BASE_URL: str = os.getenv("OSRM_BASE_URL", "https://router.project-osrm.org")
    # The public server only routes cars; other modes are rescaled client-side.
    PROFILE: str = os.getenv("OSRM_PROFILE", "driving")

    CACHE_ENABLED: bool = os.getenv("OSRM_CACHE_ENABLED", "true").lower() == "true"
    CACHE_TTL_SECONDS: int = int(os.getenv("OSRM_CACHE_TTL", "300"))
    CACHE_MAX_SIZE: int = int(os.getenv("OSRM_CACHE_MAX_SIZE", "500"))

    TIMEOUT_SECONDS: float = float(os.getenv("OSRM_TIMEOUT", "15.0"))
    ROUTE_TIMEOUT_SECONDS: float = float(os.getenv("OSRM_ROUTE_TIMEOUT", "10.0"))

    CYCLING_SPEED_KMH: float = float(os.getenv("OSRM_CYCLING_SPEED", "15.0"))
    WALKING_SPEED_KMH: float = float(os.getenv("OSRM_WALKING_SPEED", "5.0"))

    @classmethod
    def get_route_url(cls, profile: str = None) -> str:
        return f"{cls.BASE_URL}/route/v1/{profile or cls.PROFILE}"

    @classmethod
    def get_trip_url(cls, profile: str = None) -> str:
        return f"{cls.BASE_URL}/trip/v1/{profile or cls.PROFILE}"

    @classmethod
    def is_self_hosted(cls) -> bool:
        return "router.project-osrm.org" not in cls.BASE_URL

    @classmethod
    def get_config_dict(cls) -> dict:
        return {
            "BASE_URL": cls.BASE_URL,
            "ROUTE_URL": cls.get_route_url(),
            "TRIP_URL": cls.get_trip_url(),
            "CACHE_ENABLED": cls.CACHE_ENABLED,
            "CACHE_TTL_SECONDS": cls.CACHE_TTL_SECONDS,
            "TIMEOUT_SECONDS": cls.TIMEOUT_SECONDS,
            "ROUTE_TIMEOUT_SECONDS": cls.ROUTE_TIMEOUT_SECONDS,
            "IS_SELF_HOSTED": cls.is_self_hosted(),
        }


osrm_config = OSRMConfig()
