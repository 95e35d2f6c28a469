# restsqla to json encoding

import datetime
import decimal
from flask.json.provider import DefaultJSONProvider
from uuid import UUID
import restsqla
from .config import is_debug
from .serializer import Serializer
from .util import is_mapped_instance


class RestJSONProvider(DefaultJSONProvider):
    """
    Flask JSON encoding for the values found in serialized records
    """

    sort_keys = False

    @staticmethod
    def default(obj):
        """
        override the default json encoding
        :param obj: object to be encoded
        :return: encoded/serialized object
        """
        if isinstance(obj, datetime.timedelta):
            return str(obj)
        if isinstance(obj, datetime.datetime):
            return obj.isoformat(" ")
        if isinstance(obj, (datetime.date, datetime.time)):
            return obj.isoformat()
        if isinstance(obj, set):
            return list(obj)
        if isinstance(obj, UUID):  # pragma: no cover
            return str(obj)
        if isinstance(obj, decimal.Decimal):  # pragma: no cover
            return float(obj)
        if isinstance(obj, bytes):  # pragma: no cover
            if obj == b"":
                return ""
            restsqla.log.debug("RestJSONProvider: serializing bytes obj")
            return obj.hex()
        if is_mapped_instance(obj):
            return Serializer().serialize_record(obj)

        if not is_debug():  # pragma: no cover
            restsqla.log.warning(f'JSON Encoding Error: Unknown object type "{type(obj)}" for {obj}')
            return {"error": "RestJSONProvider invalid object"}

        return str(obj)  # pragma: no cover
