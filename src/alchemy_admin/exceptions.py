class AdminException(Exception):
    """Helps the HTTP exception compute flows."""

    status_code = 500
    message = 'Internal Server Error'

    def __init__(self, message: str = None, status_code: int = None):
        if status_code:
            self.status_code = status_code
        if message:
            self.message = message
        super().__init__(self.message)


class RegistrationError(AdminException):
    """The model metadata can't be built: the admin must not start."""


class TagParseError(RegistrationError):
    """The `admin` tag of a field is malformed."""


class ConfigError(RegistrationError):
    """A configuration value (tag option or setup key) is malformed."""


class ValidationError(AdminException):
    """A submitted value doesn't fit the field."""

    status_code = 400


class NotFoundError(AdminException):
    """One of the web resources wasn't found."""

    status_code = 404
    message = 'Not Found'


class StorageError(AdminException):
    """The database refused the statement."""

    message = 'Storage failure'


class SessionNotFound(AdminException):

    def __init__(self, token):
        super().__init__(f'Session "{token}" not found', 403)
