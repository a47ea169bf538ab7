"""Domain errors raised by the bridge core and mapped to HTTP responses in main."""


class BridgeError(Exception):
    """Base class for expected business failures."""

    status_code = 500
    code = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(BridgeError):
    """Referenced building, unit or occupancy does not exist."""

    status_code = 404
    code = "NOT_FOUND"


class ConflictError(BridgeError):
    """Uniqueness or exclusivity violation; retrying with other input may succeed."""

    status_code = 409
    code = "CONFLICT"


class BadRequestError(BridgeError):
    status_code = 400
    code = "BAD_REQUEST"
