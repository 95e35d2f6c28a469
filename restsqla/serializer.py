#
# Serializers convert the results of the RestService to json serializable objects
#
from collections.abc import Mapping
from http import HTTPStatus
from sqlalchemy import inspect
from .util import is_mapped_instance
from typing import Any, Dict, Optional


class Serializer:
    """
    Default serializer: records become dicts of their column values and the relationships
    that are already loaded. Relationships are serialized one level deep.
    """

    depth = 1

    def serialize(self, adapter, result: Any, meta: Optional[Dict] = None, status: Optional[int] = None) -> Dict[str, Any]:
        """
        :param adapter: the RestAdapter that produced the result
        :param result: instance, list of instances or None
        :param meta: response meta data
        :param status: HTTP status code
        :return: {"result": ..., "meta": ..., "status": ...}
        """
        return {
            "result": self.serialize_result(result),
            "meta": meta or {},
            "status": status or HTTPStatus.OK.value,
        }

    def serialize_result(self, result: Any, depth: Optional[int] = None) -> Any:
        if depth is None:
            depth = self.depth
        if isinstance(result, (list, tuple)):
            return [self.serialize_result(item, depth) for item in result]
        if hasattr(result, "to_dict"):
            return result.to_dict()
        if is_mapped_instance(result):
            return self.serialize_record(result, depth)
        if isinstance(result, Mapping):
            return {key: self.serialize_result(value, depth) for key, value in result.items()}
        return result

    def serialize_record(self, record: Any, depth: int = 0) -> Dict[str, Any]:
        """
        :param record: mapped instance
        :param depth: how deep loaded relationships are serialized
        :return: dict
        """
        state = inspect(record)
        mapper = state.mapper
        data = {attr.key: getattr(record, attr.key) for attr in mapper.column_attrs}
        if depth <= 0:
            return data
        for relationship in mapper.relationships:
            if relationship.key in state.unloaded:
                continue
            value = getattr(record, relationship.key)
            if value is None:
                data[relationship.key] = None
            elif relationship.uselist:
                data[relationship.key] = [self.serialize_record(item, depth - 1) for item in value]
            else:
                data[relationship.key] = self.serialize_record(value, depth - 1)
        return data
