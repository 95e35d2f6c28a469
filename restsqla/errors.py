# Exception Handlers
#
# The application loglevel determines the level of detail shown to the user.
# If set to debug, too much sensitive info might be shown !
#
# Every error carries a `status_code` that is used as HTTP status by the api layer,
# the exceptions will be caught in http_method_decorator and formatted, for example:
# {
#      "title": "Not Found: Can not find model 'User'.",
#      "detail": "Not Found: Can not find model 'User'.",
#      "code": "404"
# }
#
from http import HTTPStatus
from werkzeug.exceptions import NotFound
from sqlalchemy.exc import DontWrapMixin
import restsqla
from .config import is_debug

HIDDEN_LOG = "(debug logging disabled)"


class RestError(Exception, DontWrapMixin):
    """
    Base class for the errors raised by restsqla

    `message` is what is returned to the client, the raw reason is kept in `reason`.
    Client errors always send back their message, server errors only when debug logging is enabled
    """

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR.value
    message = "Error: "
    client_error = False

    def __init__(self, message="", status_code=None):
        """
        :param message: Message to be returned in the (json) body
        :param status_code: HTTP Status code, defaults to the class status_code
        """
        Exception.__init__(self, message)
        self.reason = str(message)
        if status_code is not None:
            self.status_code = status_code
        if self.client_error:
            restsqla.log.warning("%s%s", self.message, self.reason)
            self.message = f"{self.message}{self.reason}"
        else:
            restsqla.log.error("%s%s", self.message, self.reason)
            self.message = f"{self.message}{self.reason if is_debug() else HIDDEN_LOG}"

    def __str__(self):
        return self.message


class ValidationError(RestError):
    """
    This exception is raised when invalid input has been detected (client side input)
    Always send back the message to the client in the response
    """

    status_code = HTTPStatus.BAD_REQUEST.value
    message = "Validation Error: "
    client_error = True


BadRequestError = ValidationError


class NotFoundError(RestError, NotFound):
    """
    This exception is raised when an item was not found
    """

    status_code = HTTPStatus.NOT_FOUND.value
    message = "Not Found: "
    client_error = True

    def __init__(self, message="", status_code=None):
        RestError.__init__(self, message, status_code)
        self.description = self.message


class InvalidIdentifierError(RestError, TypeError):
    """
    This exception is raised when an identifier can't be converted to the primary key type
    """

    status_code = HTTPStatus.BAD_REQUEST.value
    message = "Invalid Identifier: "
    client_error = True


class InvalidTypeError(RestError, TypeError):
    """
    This exception is raised when a type is neither a name nor a mapped class
    """

    status_code = HTTPStatus.BAD_REQUEST.value
    message = "Invalid Type: "
    client_error = True


class AssociationHandlerError(RestError, TypeError):
    """
    This exception is raised when no association handler is registered for a target and intent
    """

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR.value
    message = "Association Handler Error: "

    def __init__(self, message="", candidates=()):
        self.candidates = tuple(candidates)
        RestError.__init__(self, message)


class DatabaseError(RestError):
    """
    This exception is raised when a rollback failed after a prior failure,
    the state of the database may be inconsistent
    """

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR.value
    message = "Database Error: "

    def __init__(self, message="", original=None, rollback_error=None):
        """
        :param message: error message
        :param original: the exception that caused the rollback
        :param rollback_error: the exception raised by the rollback
        """
        self.original = original
        self.rollback_error = rollback_error
        RestError.__init__(self, message)


class OperationCancelledError(RestError):
    """
    This exception is raised when an operation has been cancelled by the caller
    """

    status_code = HTTPStatus.REQUEST_TIMEOUT.value
    message = "Operation Cancelled: "
    client_error = True
