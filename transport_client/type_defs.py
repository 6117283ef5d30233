"""
Type definitions for the transport client.

This module contains type aliases used across the package.
"""

from typing import Any, Awaitable, Callable, Dict, List, Tuple, Union

# =============================================================================
# Basic type aliases
# =============================================================================

# Coordinates as (lng, lat) tuples, the order OSRM and GeoJSON expect
LngLat = Tuple[float, float]

# Backend identifiers are integers, but some endpoints send them as strings
EntityId = Union[int, str]

# =============================================================================
# Socket types
# =============================================================================

# Raw Socket.IO event payload
EventPayload = Dict[str, Any]

# Listener registered on a socket event; may be sync or async
EventListener = Callable[[Any], Union[None, Awaitable[None]]]

# =============================================================================
# API types
# =============================================================================

# Decoded JSON body
JSONBody = Union[Dict[str, Any], List[Any], None]

# GeoJSON FeatureCollection
GeoJSON = Dict[str, Any]
