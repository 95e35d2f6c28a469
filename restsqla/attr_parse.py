import datetime
import restsqla
import sqlalchemy
from .errors import ValidationError

TRUE_VALUES = ("true", "1", "yes", "on")
FALSE_VALUES = ("false", "0", "no", "off")


def parse_attr(column, attr_val):
    """
    Parse the supplied `attr_val` so it can be saved in or compared with the SQLAlchemy `column`

    :param column: SQLAlchemy column
    :param attr_val: payload or query string value
    :return: processed value
    """
    if attr_val is None and column.default is not None and column.default.is_scalar:
        return column.default.arg

    if attr_val is None:
        return attr_val

    try:
        python_type = column.type.python_type
    except NotImplementedError as exc:
        """
        This happens when a custom type has been implemented, in which case the user/dev should know how to handle it
        => simply return the attr_val for user-defined classes
        """
        restsqla.log.debug(exc)
        return attr_val

    # skip type coercion on JSON columns, since they could be anything
    if isinstance(column.type, sqlalchemy.types.JSON):
        return attr_val

    if isinstance(attr_val, python_type) and not (python_type is int and isinstance(attr_val, bool)):
        return attr_val

    try:
        return _coerce(python_type, attr_val)
    except (TypeError, ValueError, ArithmeticError) as exc:
        raise ValidationError(f'Invalid value "{attr_val}" for "{column.name}": {exc}')


def _coerce(python_type, attr_val):
    """
    Parse datetime and date values for some common representations
    If another format is used, the user should create a custom column type
    """
    if python_type is bool:
        value = str(attr_val).lower()
        if value in TRUE_VALUES:
            return True
        if value in FALSE_VALUES:
            return False
        raise ValueError("not a boolean")

    if python_type is datetime.datetime:
        date_str = str(attr_val)
        if "T" in date_str:
            return datetime.datetime.fromisoformat(date_str)
        if "." in date_str:
            # str(datetime.datetime.now()) => "%Y-%m-%d %H:%M:%S.%f"
            return datetime.datetime.strptime(date_str, "%Y-%m-%d %H:%M:%S.%f")
        if " " in date_str:
            # JS datepicker format
            return datetime.datetime.strptime(date_str, "%Y-%m-%d %H:%M:%S")
        return datetime.datetime.strptime(date_str, "%Y-%m-%d")

    if python_type is datetime.date:
        return datetime.datetime.strptime(str(attr_val)[:10], "%Y-%m-%d").date()

    if python_type is datetime.time:
        time_str = str(attr_val)
        if "." in time_str:
            return datetime.datetime.strptime(time_str, "%H:%M:%S.%f").time()
        return datetime.datetime.strptime(time_str, "%H:%M:%S").time()

    return python_type(attr_val)
