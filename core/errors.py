"""
Domain exceptions raised by services and mapped to HTTP responses in
core.exception_handlers.
"""


class TrackerError(Exception):
    """Base class for errors the API turns into an error envelope."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidInput(TrackerError):
    status_code = 400
    code = "invalid_input"


class NotFound(TrackerError):
    status_code = 404
    code = "not_found"


class JourneyNotFound(NotFound):
    code = "journey_not_found"

    def __init__(self, bus_id: str):
        super().__init__(
            f"No active journey found for bus {bus_id}",
            details="Journey not started. Make sure you started the journey first.",
        )
        self.bus_id = bus_id


class Conflict(TrackerError):
    status_code = 409
    code = "conflict"


class GeocodingError(TrackerError):
    status_code = 502
    code = "geocoding_error"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code
