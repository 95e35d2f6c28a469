#
# RestAdapter: the CRUD operations on resource types.
# Incoming payloads are normalized by the deserializer and results are shaped by the serializer
#
from collections.abc import Mapping
from http import HTTPStatus
from math import ceil
import restsqla
from .config import get_config, get_int_config
from .deserializer import Deserializer
from .errors import InvalidIdentifierError, InvalidTypeError, NotFoundError, ValidationError
from .query import ASC, DESC, Query
from .resolver import DefaultResolver
from .serializer import Serializer
from .service import RestService
from .util import coerce_identifier, get_identity, identity_values, is_mapped_class, primary_key_names
from typing import Any, Dict, Optional, Union

PAGINATION_PARAMS = ("page", "size", "sort", "order")


class RestAdapter:
    """
    :param db: Flask-SQLAlchemy extension
    :param services: type name => RestService subclass or instance
    :param resolver: Resolver instance, defaults to a DefaultResolver
    """

    def __init__(self, db, services: Optional[Dict] = None, resolver=None, handlers=None) -> None:
        if db is None:
            raise TypeError("You must define a db for the RestAdapter.")
        self.db = db
        self.resolver = resolver if resolver is not None else DefaultResolver(db, services=services, handlers=handlers)
        self.handlers = handlers

    def service_for(self, type_: Union[str, type]) -> RestService:
        service = self.resolver.resolve_service(type_)
        if service is None:
            service = RestService(self.db, handlers=self.handlers)
        return service

    def serializer_for(self, type_: Union[str, type]) -> Serializer:
        serializer = self.resolver.resolve_serializer(type_)
        if serializer is None:
            serializer = Serializer()
        return serializer

    def deserializer_for(self, type_: Union[str, type]) -> Deserializer:
        deserializer = self.resolver.resolve_deserializer(type_)
        if deserializer is None:
            deserializer = Deserializer()
        return deserializer

    def model_for(self, type_: Union[str, type]) -> type:
        """
        :param type_: type name or mapped class
        :return: mapped class
        """
        if is_mapped_class(type_):
            return type_
        if not isinstance(type_, str):
            raise InvalidTypeError(f"Type must be a String or a mapped class. You passed a `{type(type_).__name__}`.")
        model = self.resolver.resolve_model(type_)
        if model is None:
            raise NotFoundError(f"Could not find Model for type `{type_}`.")
        return model

    def sub_resource_for(self, sub_type: Union[str, type]) -> Union[str, type]:
        """
        Relationship keys that don't name a model are passed on as is
        """
        if is_mapped_class(sub_type) or not isinstance(sub_type, str):
            return self.model_for(sub_type)
        model = self.resolver.resolve_model(sub_type)
        return sub_type if model is None else model

    def normalize_payload(self, type_: Union[str, type], payload: Any) -> Any:
        if not payload:
            raise ValidationError("No data sent to the server")
        return self.deserializer_for(type_).deserialize(self, type_, payload)

    def serialize(self, type_: Union[str, type], result: Any, meta: Optional[Dict] = None, status: Optional[int] = None) -> Dict:
        return self.serializer_for(type_).serialize(self, result, meta, status)

    @staticmethod
    def _positive_int(value: Any, name: str) -> int:
        try:
            result = int(value)
        except (TypeError, ValueError):
            raise ValidationError(f'Invalid "{name}" parameter "{value}"')
        if result < 1:
            raise ValidationError(f'Invalid "{name}" parameter "{value}"')
        return result

    def pagination(self, params: Mapping) -> Dict[str, Any]:
        """
        Parse the page, size, sort and order parameters, defaults are applied when they're missing
        :param params: query string parameters
        :return: {"page", "size", "sort", "order"}
        """
        page = self._positive_int(params.get("page") or 1, "page")
        size = self._positive_int(params.get("size") or get_config("DEFAULT_PAGE_SIZE"), "size")
        size = min(size, get_int_config("MAX_PAGE_SIZE"))
        order = str(params.get("order") or get_config("DEFAULT_ORDER")).upper()
        if order not in (ASC, DESC):
            order = DESC
        return {"page": page, "size": size, "sort": params.get("sort") or None, "order": order}

    def find(self, type_: Union[str, type], params: Optional[Mapping] = None) -> Dict:
        """
        Find the records that match the params, the params that are not used for pagination
        are attribute filters

        :param type_: type name or mapped class
        :param params: query string parameters
        :return: serialized records with pagination meta data
        """
        params = dict(params or {})
        pagination = self.pagination(params)
        where = {name: value for name, value in params.items() if name not in PAGINATION_PARAMS}
        size = pagination["size"]
        query = {
            "where": where,
            "limit": size,
            "offset": (pagination["page"] - 1) * size,
            "order": [(pagination["sort"], pagination["order"])] if pagination["sort"] else [],
        }
        result = self._execute("find", type_, query)
        count = result["count"]
        meta = {"size": size, "page": pagination["page"], "totalSize": count, "totalPages": ceil(count / size)}
        return self.serialize(type_, result["rows"], meta)

    def find_by_id(self, type_: Union[str, type], id: Any) -> Dict:
        model = self.model_for(type_)
        query = {"where": identity_values(model, id)}
        return self.serialize(type_, self._execute("find_one", type_, query))

    def _reload(self, type_: Union[str, type], instance: Any) -> Dict:
        model = self.model_for(type_)
        identity = tuple(getattr(instance, name) for name in primary_key_names(model))
        return self.find_by_id(type_, identity)

    def create(self, type_: Union[str, type], payload: Any) -> Dict:
        """
        Persist a new record and reload it with its associations
        """
        data = self.normalize_payload(type_, payload)
        instance = self._execute("persist", type_, data)
        result = self._reload(type_, instance)
        result["status"] = HTTPStatus.CREATED.value
        return result

    def update(self, type_: Union[str, type], id: Any, payload: Any = None) -> Dict:
        """
        Update the record with the given id, the id may be omitted when the payload contains it:
        update(type_, payload)
        """
        if payload is None and isinstance(id, Mapping):
            payload, id = id, None
        model = self.model_for(type_)
        data = dict(self.normalize_payload(type_, payload))
        if id is None:
            id = get_identity(model, data)
        if id is None:
            raise ValidationError(f"Can not update a model `{model.__name__}` without specifying its id.")
        data.update(identity_values(model, id))
        instance = self._execute("persist", type_, data)
        return self._reload(type_, instance)

    def delete(self, type_: Union[str, type], id: Any) -> Dict:
        model = self.model_for(type_)
        self._execute("delete", type_, coerce_identifier(model, id))
        return self.serialize(type_, None, status=HTTPStatus.NO_CONTENT.value)

    def find_sub_resources(self, type_: Union[str, type], id: Any, sub_type: Union[str, type], query: Any = None) -> Dict:
        records = self._execute("find_sub_resources", type_, id, self.sub_resource_for(sub_type), query)
        return self.serialize(type_, records)

    def find_sub_resource_by_id(self, type_: Union[str, type], id: Any, sub_type: Union[str, type], sub_id: Any) -> Dict:
        if sub_id is None or sub_id == "":
            raise InvalidIdentifierError("You must define a sub resource id")
        sub_resource = self.sub_resource_for(sub_type)
        model = self.model_for(type_)
        association = self.service_for(type_).resolve_sub_resource(model, id, sub_resource, self.db.session)[0]
        query = {"where": identity_values(association.target, sub_id)}
        records = self._execute("find_sub_resources", type_, id, sub_resource, query)
        if not records:
            raise NotFoundError(f'Invalid "{association.target.__name__}" ID "{sub_id}"')
        return self.serialize(type_, records[0])

    def create_sub_resources(self, type_: Union[str, type], id: Any, sub_type: Union[str, type], payload: Any) -> Dict:
        data = self.normalize_payload(type_, payload)
        records = self._execute("create_sub_resources", type_, id, self.sub_resource_for(sub_type), data)
        return self.serialize(type_, records, status=HTTPStatus.CREATED.value)

    def delete_sub_resources(self, type_: Union[str, type], id: Any, sub_type: Union[str, type], query: Any = None) -> Dict:
        """
        :param query: where conditions, or the id of a single sub resource
        """
        sub_resource = self.sub_resource_for(sub_type)
        if query is not None and not isinstance(query, (Mapping, Query)):
            model = self.model_for(type_)
            association = self.service_for(type_).resolve_sub_resource(model, id, sub_resource, self.db.session)[0]
            query = {"where": identity_values(association.target, query)}
        elif isinstance(query, Mapping) and not set(query) & {"where", "include", "order", "limit", "offset"}:
            query = {"where": dict(query)}
        count = self._execute("delete_sub_resources", type_, id, sub_resource, query)
        return self.serialize(type_, None, meta={"count": count})

    def _execute(self, method: str, type_: Union[str, type], *args) -> Any:
        """
        Execute a method of the service responsible for this type
        """
        model = self.model_for(type_)
        service = self.service_for(type_)
        func = getattr(service, method, None)
        if not callable(func):
            raise TypeError(f"Can not execute method {method} on a service, as it is not a function.")
        restsqla.log.debug(f"{type(service).__name__}.{method}({model.__name__})")
        return func(model, *args)
