"""
Error taxonomy for the Sardene API.

Every failure the service reports to a client is a ServiceError subclass
carrying its HTTP status and a short public message. The exception
handlers in main.py render them as {"status": ..., "error": ...}.
"""


class ServiceError(Exception):
    status_code = 500
    message = "Server error"

    def __init__(self, message=None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class ConfigError(Exception):
    """Raised at startup when required settings are missing."""


# ---------- Authentication ----------

class AuthError(ServiceError):
    status_code = 401
    message = "Cannot be authenticated"


class InvalidHeaderFormatError(AuthError):
    message = "Authorization header must be 'Bearer <token>'"


class InvalidIdentityError(AuthError):
    message = "Credential does not map to a user"


class UpstreamProfileError(AuthError):
    message = "Cannot get user"


class InvalidCodeError(AuthError):
    status_code = 403
    message = "Cannot be authenticated"


class UpstreamAuthError(AuthError):
    status_code = 403
    message = "Cannot be authenticated"


# ---------- Engagement / lookup ----------

class ConflictError(ServiceError):
    status_code = 409
    message = "Conflict"


class AlreadyEngagedError(ConflictError):
    message = "Idea already engaged by this user"


class NotFoundError(ServiceError):
    status_code = 404
    message = "Not found"


class IdeaNotFoundError(NotFoundError):
    message = "Error, Idea not found"


# ---------- Input ----------

class ValidationError(ServiceError):
    status_code = 400
    message = "Invalid request"


class MalformedBodyError(ValidationError):
    message = "Wrong structure of posted data"


class InvalidIdError(ValidationError):
    message = "Error, Idea id is not valid"


# ---------- Storage ----------

class StorageError(ServiceError):
    status_code = 503
    message = "Error in accessing database"


class StorageUnavailableError(StorageError):
    pass


class StorageTimeoutError(StorageError):
    message = "Database did not respond in time"
