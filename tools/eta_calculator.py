# tools/eta_calculator.py
import math

EARTH_RADIUS_KM = 6371.0
ASSUMED_SPEED_KMH = 30.0


def great_circle_distance_km(lat1, lng1, lat2, lng2):
    """Haversine distance between two points, in kilometres."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * (math.sin(dlambda / 2.0) ** 2)
    # rounding can push `a` a hair past 1.0 for antipodal points
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(min(a, 1.0)))


def estimate_eta_minutes(distance_km: float, speed_kmh: float = ASSUMED_SPEED_KMH) -> int:
    """Minutes to cover `distance_km` at a flat average speed, rounded half-up."""
    minutes = distance_km / speed_kmh * 60.0
    return int(math.floor(minutes + 0.5))
