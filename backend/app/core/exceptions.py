"""
Domain error taxonomy.

Services raise these instead of HTTPException; a single handler in
app.main maps each one to its status code with a {"detail": ...} body.
"""


class AppError(Exception):
    status_code: int = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(AppError):
    """Booking, payment or notification does not exist."""

    status_code = 404


class ForbiddenError(AppError):
    """Actor is not the party allowed to perform the action."""

    status_code = 403


class ValidationError(AppError):
    """Illegal input value or illegal state for the requested transition."""

    status_code = 400


class ConflictError(AppError):
    status_code = 409


class AuthenticationError(AppError):
    status_code = 401


class ConfigurationError(AppError):
    """A required external collaborator (e.g. the payment gateway) is not configured."""

    status_code = 503


class UpstreamError(AppError):
    """The payment gateway failed or answered with something we don't understand."""

    status_code = 502
