class DiscoveryError(Exception):
    """Base exception for the discovery service.

    ``status_code`` is the HTTP status the global handler responds with.
    """

    status_code: int = 500

    def __init__(self, message: str = ""):
        self.message = message or self.__class__.__doc__.strip().splitlines()[0]
        super().__init__(self.message)


class NotFoundError(DiscoveryError):
    """Requested resource not found."""

    status_code = 404


class InvalidInputError(DiscoveryError):
    """Request is missing a required field or carries an invalid value."""

    status_code = 400


class AlreadyCompletedError(DiscoveryError):
    """This session has already been completed."""

    status_code = 400


class StateMissingError(DiscoveryError):
    """Session state not found. Please restart the session."""

    status_code = 400


class InsufficientDataError(DiscoveryError):
    """Not enough completed summaries to synthesize an overview."""

    status_code = 400


class ConflictError(DiscoveryError):
    """Operation conflicts with work already in progress."""

    status_code = 409


class UnauthorizedError(DiscoveryError):
    """Unauthorized."""

    status_code = 401


class GatewayError(DiscoveryError):
    """LLM service did not return a usable structured response."""

    status_code = 500


class BoardError(DiscoveryError):
    """Project-management board API request failed."""

    status_code = 502
