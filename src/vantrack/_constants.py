"""Internal constants shared across the library."""

USER_AGENT = "vantrack/1.0 (+https://github.com/vantrack)"
NOMINATIM_REVERSE_URL = "https://nominatim.openstreetmap.org/reverse"

# ------------------------------------------------------------------
# Guardian code range (6 digits, no leading zero)
# ------------------------------------------------------------------

GUARDIAN_CODE_MIN = 100_000
GUARDIAN_CODE_MAX = 999_999

# ------------------------------------------------------------------
# Movement thresholds, in degrees on either axis
# ------------------------------------------------------------------

#: ~50 m; below this the previous location name is reused.
GEOCODE_THRESHOLD_DEG = 0.0005
#: ~10 m; below this no breadcrumb row is written.
BREADCRUMB_THRESHOLD_DEG = 0.0001

# ------------------------------------------------------------------
# Proximity alerting
# ------------------------------------------------------------------

PROXIMITY_RADIUS_KM = 0.5
EARTH_RADIUS_KM = 6371.0
DEFAULT_DESTINATION: tuple[float, float] = (0.3476, 32.5825)

SHIFT_ENDED_LOCATION_NAME = "Shift Ended"
DEFAULT_TRAIL_LIMIT = 100


def ms_to_kmh(speed_ms: float | None) -> int:
    """Convert a device speed in m/s to whole km/h (``None`` reads as stopped)."""
    if speed_ms is None:
        return 0
    return int(round(speed_ms * 3.6))
