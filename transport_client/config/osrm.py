"""
OSRM (Open Source Routing Machine) settings for drawing road paths between stops.
"""

import os
from typing import Dict


class OSRMConfig:
    """Where road paths are resolved and how their geometry is requested."""

    BASE_URL: str = os.getenv("OSRM_BASE_URL", "http://router.project-osrm.org").rstrip("/")
    PROFILE: str = os.getenv("OSRM_PROFILE", "driving")
    ROUTE_URL: str = os.getenv("OSRM_ROUTE_URL", f"{BASE_URL}/route/v1/{PROFILE}").rstrip("/")

    # Full-resolution geometry, encoded as a precision-5 polyline
    OVERVIEW: str = "full"
    GEOMETRIES: str = "polyline"

    TIMEOUT_SECONDS: float = float(os.getenv("OSRM_TIMEOUT", "10.0"))

    @classmethod
    def get_route_url(cls) -> str:
        return cls.ROUTE_URL

    @classmethod
    def route_params(cls) -> Dict[str, str]:
        return {"overview": cls.OVERVIEW, "geometries": cls.GEOMETRIES}

    @classmethod
    def is_self_hosted(cls) -> bool:
        """False while pointed at the rate-limited public demo server."""
        return "router.project-osrm.org" not in cls.BASE_URL

    @classmethod
    def get_config_dict(cls) -> dict:
        return {
            "BASE_URL": cls.BASE_URL,
            "PROFILE": cls.PROFILE,
            "ROUTE_URL": cls.ROUTE_URL,
            "ROUTE_PARAMS": cls.route_params(),
            "TIMEOUT_SECONDS": cls.TIMEOUT_SECONDS,
            "IS_SELF_HOSTED": cls.is_self_hosted(),
        }


osrm_config = OSRMConfig()
