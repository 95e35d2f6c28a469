# flake8: noqa: F401
#
# DB and log have to be imported first, the other modules use restsqla.log
#
from .restsqla_init import DB, log, RestSQLA
from .errors import (
    RestError,
    ValidationError,
    BadRequestError,
    NotFoundError,
    InvalidIdentifierError,
    InvalidTypeError,
    AssociationHandlerError,
    DatabaseError,
    OperationCancelledError,
)
from .associations import Association, TO_ONE, TO_MANY, TO_MANY_THROUGH, associations_for, find_association
from .handlers import AssociationHandlerRegistry, CREATE, UPDATE, ANY, create_association, update_association
from .query import Query, Include, populate
from .tx import Transaction
from .service import RestService, PersistPlan
from .serializer import Serializer
from .deserializer import Deserializer
from .resolver import Resolver, DefaultResolver
from .adapter import RestAdapter
from .api import RestAPI, http_method_decorator
from .__about__ import __version__, __description__

__all__ = (
    "__version__",
    "__description__",
    #
    "DB",
    "RestSQLA",
    "RestAPI",
    "RestAdapter",
    "RestService",
    "PersistPlan",
    "Transaction",
    # associations:
    "Association",
    "TO_ONE",
    "TO_MANY",
    "TO_MANY_THROUGH",
    "associations_for",
    "find_association",
    "AssociationHandlerRegistry",
    "CREATE",
    "UPDATE",
    "ANY",
    "create_association",
    "update_association",
    # query:
    "Query",
    "Include",
    "populate",
    # modules:
    "Resolver",
    "DefaultResolver",
    "Serializer",
    "Deserializer",
    "http_method_decorator",
    # Errors:
    "RestError",
    "ValidationError",
    "BadRequestError",
    "NotFoundError",
    "InvalidIdentifierError",
    "InvalidTypeError",
    "AssociationHandlerError",
    "DatabaseError",
    "OperationCancelledError",
)
