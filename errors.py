# errors.py
"""Error taxonomy shared by routes, the activity logger and the re-authenticator.

AppError subclasses are rendered by the handler in main.py as
``{"error": message}`` with their status code. The message is the only
thing the client ever sees.
"""


class AppError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Missing required fields"


class UpstreamAuthError(AppError):
    status_code = 401
    default_message = "Authentication with provider failed"


class ConfigurationError(AppError):
    status_code = 500
    default_message = "Server configuration is missing"


class SinkWriteError(AppError):
    status_code = 500
    default_message = "Failed to write activity log"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


# Re-authentication causes. These never reach the client; authenticate()
# logs them and returns None.
class ReauthError(Exception):
    pass


class MissingCredential(ReauthError):
    pass


class UpstreamAuthFailure(ReauthError):
    pass


class TransportError(ReauthError):
    pass
