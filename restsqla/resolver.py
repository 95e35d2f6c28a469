#
# Resolvers look up the models, services, serializers and deserializers for a resource type
#
import restsqla
from .deserializer import Deserializer
from .errors import InvalidTypeError
from .serializer import Serializer
from .service import RestService
from .util import collection_name, is_mapped_class, mapped_classes
from typing import Any, Dict, Optional, Union

SERVICES = "services"
SERIALIZERS = "serializers"
DESERIALIZERS = "deserializers"


class Resolver:
    """
    Base resolver, `resolve` doesn't resolve anything: subclasses override it.
    Resolved modules are cached per "type:name"

    :param db: Flask-SQLAlchemy extension
    """

    def __init__(self, db) -> None:
        self.db = db
        self._cache: Dict[str, Any] = {}

    @staticmethod
    def normalize_type_name(name: Union[str, type]) -> str:
        """
        :param name: type name or mapped class
        :return: the type name, mapped classes resolve to their collection name
        """
        if is_mapped_class(name):
            return collection_name(name)
        if not isinstance(name, str):
            raise InvalidTypeError(f"Type name must be a String or a mapped class. You passed a `{type(name).__name__}`.")
        return name

    def resolve_service(self, name: Union[str, type]) -> Optional[RestService]:
        return self._resolve_and_cache(SERVICES, self.normalize_type_name(name))

    def resolve_serializer(self, name: Union[str, type]) -> Optional[Serializer]:
        return self._resolve_and_cache(SERIALIZERS, self.normalize_type_name(name))

    def resolve_deserializer(self, name: Union[str, type]) -> Optional[Deserializer]:
        return self._resolve_and_cache(DESERIALIZERS, self.normalize_type_name(name))

    def resolve_model(self, name: Union[str, type]) -> Optional[type]:
        """
        Find the mapped class for a name, the collection name (table name) is matched first,
        then the class name. Names are case insensitive.

        :param name: type name or mapped class
        :return: mapped class or None
        """
        if is_mapped_class(name):
            return name
        if not isinstance(name, str):
            raise InvalidTypeError(f"Type name must be a String or a mapped class. You passed a `{type(name).__name__}`.")
        models = mapped_classes(self.db)
        lower_name = name.lower()
        for model in models:
            if collection_name(model).lower() == lower_name:
                return model
        for model in models:
            if model.__name__.lower() == lower_name:
                return model
        return None

    @staticmethod
    def cache_key(type_: str, name: str) -> str:
        return f"{type_}:{name}"

    def get_from_cache(self, type_: str, name: str) -> Optional[Any]:
        return self._cache.get(self.cache_key(type_, name))

    def add_to_cache(self, type_: str, name: str, value: Any) -> None:
        self._cache[self.cache_key(type_, name)] = value

    def clear_cache(self) -> None:
        self._cache = {}

    def resolve(self, type_: str, name: str) -> Optional[Any]:
        """
        Resolve a module for a type name
        :param type_: SERVICES, SERIALIZERS or DESERIALIZERS
        :param name: type name
        :return: the module, None if it can't be resolved
        """
        return None

    def _resolve_and_cache(self, type_: str, name: str) -> Optional[Any]:
        module = self.get_from_cache(type_, name)
        if module is None:
            module = self.resolve(type_, name)
            if module is not None:
                restsqla.log.debug(f"Resolved {self.cache_key(type_, name)}: {module}")
                self.add_to_cache(type_, name, module)
        return module


class DefaultResolver(Resolver):
    """
    Resolves the modules registered for a type name, or the default modules

    :param db: Flask-SQLAlchemy extension
    :param services: type name => RestService subclass or instance
    :param serializers: type name => Serializer subclass or instance
    :param deserializers: type name => Deserializer subclass or instance
    :param handlers: association handler registry passed to the services that are created
    """

    defaults = {SERVICES: RestService, SERIALIZERS: Serializer, DESERIALIZERS: Deserializer}

    def __init__(self, db, services=None, serializers=None, deserializers=None, handlers=None) -> None:
        super().__init__(db)
        self.handlers = handlers
        self.modules = {
            SERVICES: dict(services or {}),
            SERIALIZERS: dict(serializers or {}),
            DESERIALIZERS: dict(deserializers or {}),
        }

    def register(self, type_: str, name: Union[str, type], module: Any) -> None:
        """
        Register a module for a type name and drop the cached module
        """
        name = self.normalize_type_name(name)
        self.modules[type_][name] = module
        self._cache.pop(self.cache_key(type_, name), None)

    def resolve(self, type_: str, name: str) -> Any:
        if type_ not in self.modules:
            raise ValueError(f"Can not resolve factory module for `{type_}` with name `{name}`.")
        module = self.modules[type_].get(name, self.defaults[type_])
        if not isinstance(module, type):
            return module
        if type_ == SERVICES:
            return module(self.db, handlers=self.handlers)
        return module()
