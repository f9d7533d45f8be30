"""
Spherical-Earth geodesy used by the tile engine.

Pure functions: haversine distance, forward destination from a bearing and
distance, compass bearing of a planar grid offset, and the curvature terms
that re-reference a raw elevation to the tangent plane at a reference point.
See http://www.movable-type.co.uk/scripts/latlong.html for the formulae.
"""

import math

from ..constants import EARTH_RADIUS_M


def distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in metres.

    Args:
        lat1, lon1: First point (degrees, +north / +east)
        lat2, lon2: Second point (degrees)

    Returns:
        Distance in metres
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlam = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def destination(
    lat1: float,
    lon1: float,
    bearing_deg: float,
    distance_m: float,
) -> tuple[float, float]:
    """Point reached by travelling along a great circle.

    Args:
        lat1, lon1: Origin (degrees)
        bearing_deg: Initial bearing, degrees clockwise from north
        distance_m: Distance along the surface in metres

    Returns:
        (latitude, longitude) of the destination in degrees
    """
    delta = distance_m / EARTH_RADIUS_M
    phi1 = math.radians(lat1)
    lam1 = math.radians(lon1)
    theta = math.radians(bearing_deg)

    sin_phi2 = math.sin(phi1) * math.cos(delta) + math.cos(phi1) * math.sin(delta) * math.cos(theta)
    phi2 = math.asin(max(-1.0, min(1.0, sin_phi2)))
    lam2 = lam1 + math.atan2(
        math.sin(theta) * math.sin(delta) * math.cos(phi1),
        math.cos(delta) - math.sin(phi1) * math.sin(phi2),
    )

    return math.degrees(phi2), math.degrees(lam2)


def bearing_from_offsets(delta_x: float, delta_y: float) -> float:
    """Compass bearing of a planar (east, north) offset, in [0, 360).

    The bearing is both the initial bearing at which one leaves the central
    point and the direction in which the offset cell is plotted.
    """
    if delta_x == 0 and delta_y == 0:
        return 0.0

    if delta_x == 0:
        return 0.0 if delta_y > 0 else 180.0

    if delta_y == 0:
        return 270.0 if delta_x < 0 else 90.0

    ax = abs(delta_x)
    ay = abs(delta_y)

    if delta_x > 0 and delta_y > 0:  # 0 -- 90
        if ay > ax:
            return math.degrees(math.atan(ax / ay))
        return 90.0 - math.degrees(math.atan(ay / ax))

    if delta_x > 0 and delta_y < 0:  # 90 -- 180
        if ax > ay:
            return 90.0 + math.degrees(math.atan(ay / ax))
        return 180.0 - math.degrees(math.atan(ax / ay))

    if delta_x < 0 and delta_y < 0:  # 180 -- 270
        if ax < ay:
            return 180.0 + math.degrees(math.atan(ax / ay))
        return 270.0 - math.degrees(math.atan(ay / ax))

    # 270 -- 360
    if ax > ay:
        return 270.0 + math.degrees(math.atan(ay / ax))
    return 360.0 - math.degrees(math.atan(ax / ay))


def offset_distance(delta_x: int, delta_y: int, distance_per_cell: float) -> float:
    """Along-surface distance of a grid offset, in metres."""
    return math.sqrt(1.0 * delta_x * delta_x + 1.0 * delta_y * delta_y) * distance_per_cell


def curvature_correction(distance_m: float) -> float:
    """Sag of the sphere below the tangent plane at ``distance_m``, in metres."""
    return (1.0 - math.cos(distance_m / EARTH_RADIUS_M)) * EARTH_RADIUS_M


def tangent_plane_height(raw_elevation: float, distance_m: float) -> float:
    """Height measured parallel to the vertical at the reference point.

    Heights fall off with distance: a distant object must be taller to
    reach the tangent plane at the reference point.

    Args:
        raw_elevation: Elevation above the datum at the remote point (metres)
        distance_m: Surface distance from the reference point (metres)

    Returns:
        Height relative to the tangent plane at the reference point
    """
    return raw_elevation * math.cos(distance_m / EARTH_RADIUS_M) - curvature_correction(distance_m)
