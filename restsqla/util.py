#
# Mapper helpers: primary keys, identities and column attributes of mapped classes
#
from collections.abc import Mapping
from functools import lru_cache
from sqlalchemy import inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import Mapper
from .attr_parse import parse_attr
from .errors import InvalidIdentifierError, NotFoundError
from typing import Any, Dict, List, Optional, Tuple

PK_DELIMITER = "_"


def is_mapped_class(obj: Any) -> bool:
    """
    :param obj: object to check
    :return: True if obj is a SQLAlchemy mapped class
    """
    if not isinstance(obj, type):
        return False
    try:
        return isinstance(inspect(obj), Mapper)
    except NoInspectionAvailable:
        return False


def is_mapped_instance(obj: Any) -> bool:
    """
    :param obj: object to check
    :return: True if obj is an instance of a mapped class
    """
    return not isinstance(obj, type) and is_mapped_class(type(obj))


def mapped_classes(db) -> List[type]:
    """
    :param db: Flask-SQLAlchemy extension
    :return: the classes mapped by the db.Model registry, sorted by name
    """
    return sorted((mapper.class_ for mapper in db.Model.registry.mappers), key=lambda cls: cls.__name__)


def collection_name(model: type) -> str:
    """
    :param model: mapped class
    :return: the name of the resource collection, i.e. the table name
    """
    return getattr(model, "__tablename__", None) or model.__name__


@lru_cache(maxsize=128)
def primary_key_names(model: type) -> Tuple[str, ...]:
    """
    :param model: mapped class
    :return: the attribute names of the primary key columns
    """
    mapper = inspect(model)
    return tuple(mapper.get_property_by_column(column).key for column in mapper.primary_key)


@lru_cache(maxsize=128)
def column_attributes(model: type) -> Dict[str, Any]:
    """
    :param model: mapped class
    :return: attribute name => column
    """
    return {attr.key: attr.columns[0] for attr in inspect(model).column_attrs}


def column_values(model: type, data: Mapping) -> Dict[str, Any]:
    """
    Select the column attributes from a payload and parse their values
    :param model: mapped class
    :param data: payload
    :return: attribute name => parsed value
    """
    columns = column_attributes(model)
    return {name: parse_attr(columns[name], value) for name, value in data.items() if name in columns}


def is_empty(value: Any) -> bool:
    """
    :param value: payload value
    :return: True if the value is absent or an empty string, list or mapping
    """
    if value is None:
        return True
    if isinstance(value, (str, bytes, list, tuple, Mapping)):
        return len(value) == 0
    return False


def get_identity(model: type, data: Mapping) -> Any:
    """
    :param model: mapped class
    :param data: payload
    :return: the primary key value (a tuple for composite keys) or None if it is absent
    """
    names = primary_key_names(model)
    values = tuple(data.get(name) for name in names)
    if any(value is None for value in values):
        return None
    if len(values) == 1:
        return values[0]
    return values


def is_reference(model: type, data: Any) -> bool:
    """
    A reference is a payload object that only carries the primary key

    :param model: mapped class
    :param data: payload
    :return: True if data only identifies an existing record
    """
    if not isinstance(data, Mapping) or get_identity(model, data) is None:
        return False
    return set(data.keys()) <= set(primary_key_names(model))


def coerce_identifier(model: type, identifier: Any) -> Any:
    """
    Convert an identifier to the python type of the primary key column(s)

    :param model: mapped class
    :param identifier: scalar, sequence, mapping or delimited string (composite keys)
    :return: scalar or tuple of primary key values
    """
    names = primary_key_names(model)
    columns = column_attributes(model)
    if isinstance(identifier, Mapping):
        values = [identifier.get(name) for name in names]
    elif isinstance(identifier, (list, tuple)):
        values = list(identifier)
    elif len(names) > 1 and isinstance(identifier, str):
        values = identifier.split(PK_DELIMITER)
    else:
        values = [identifier]

    if len(values) != len(names) or any(value is None for value in values):
        raise InvalidIdentifierError(f'Invalid "{model.__name__}" ID "{identifier}"')

    result = []
    for name, value in zip(names, values):
        try:
            python_type = columns[name].type.python_type
        except NotImplementedError:
            result.append(value)
            continue
        if isinstance(value, bool) or isinstance(value, (Mapping, list, tuple)):
            raise InvalidIdentifierError(f'Invalid "{model.__name__}" ID "{identifier}"')
        try:
            result.append(value if isinstance(value, python_type) else python_type(value))
        except (TypeError, ValueError, ArithmeticError):
            raise InvalidIdentifierError(f'Invalid "{model.__name__}" ID "{identifier}"')

    if len(result) == 1:
        return result[0]
    return tuple(result)


def identity_values(model: type, identifier: Any) -> Dict[str, Any]:
    """
    :param model: mapped class
    :param identifier: primary key value(s)
    :return: primary key attribute name => coerced value
    """
    identity = coerce_identifier(model, identifier)
    names = primary_key_names(model)
    if len(names) == 1:
        return {names[0]: identity}
    return dict(zip(names, identity))


def get_instance(session, model: type, identifier: Any, failsafe: bool = False) -> Optional[Any]:
    """
    :param session: SQLAlchemy session
    :param model: mapped class
    :param identifier: primary key value(s)
    :param failsafe: return None instead of raising when the instance doesn't exist
    :return: the instance
    """
    instance = session.get(model, coerce_identifier(model, identifier))
    if instance is None and not failsafe:
        raise NotFoundError(f'Invalid "{model.__name__}" ID "{identifier}"')
    return instance


def reset_identity(instance: Any) -> None:
    """
    Revert the primary key of an instance to None
    :param instance: mapped instance
    """
    for name in primary_key_names(type(instance)):
        setattr(instance, name, None)
