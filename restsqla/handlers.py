#
# Association handlers perform the writes for related records.
#
# Handlers are registered per (target, intent), the wildcard target "*" holds the
# fallback handlers. A handler is called as handler(target_model, data, session)
# and returns the written instance, it must not commit.
#
from collections.abc import Mapping
from typing import Any, Callable, Dict, Optional, Tuple, Union
import restsqla
from .errors import AssociationHandlerError
from .util import column_values, get_identity, get_instance, primary_key_names

CREATE = "create"
UPDATE = "update"
ANY = "*"

Handler = Callable[[type, Mapping, Any], Any]


def create_association(target: type, data: Mapping, session) -> Any:
    """
    Default create handler: add a new `target` row built from the column values in `data`
    :param target: mapped class
    :param data: payload of the related record
    :param session: session of the active transaction
    :return: the new (pending) instance
    """
    instance = target(**column_values(target, data))
    session.add(instance)
    return instance


def update_association(target: type, data: Mapping, session) -> Any:
    """
    Default update handler: update the `target` row identified by `data` with its other column values
    :param target: mapped class
    :param data: payload of the related record, it contains the primary key
    :param session: session of the active transaction
    :return: the updated instance
    """
    instance = get_instance(session, target, get_identity(target, data))
    primary_keys = primary_key_names(target)
    for name, value in column_values(target, data).items():
        if name not in primary_keys:
            setattr(instance, name, value)
    return instance


class AssociationHandlerRegistry:
    """
    Registry of association handlers, keyed by (target name, intent)

    :param defaults: register the default create and update handlers as fallback
    """

    def __init__(self, defaults: bool = True) -> None:
        self._handlers: Dict[Tuple[str, str], Handler] = {}
        if defaults:
            self.register(ANY, CREATE, create_association)
            self.register(ANY, UPDATE, update_association)

    @staticmethod
    def target_name(target: Union[str, type]) -> str:
        if isinstance(target, type):
            return target.__name__
        return str(target)

    @staticmethod
    def intent_for(identifier: Any) -> str:
        """
        :param identifier: primary key of the related record, None if it doesn't have one
        :return: CREATE or UPDATE
        """
        return CREATE if identifier is None else UPDATE

    @staticmethod
    def format_key(key: Tuple[str, str]) -> str:
        target, intent = key
        return f"{intent}:{target}"

    def register(self, target: Union[str, type], intent: str, handler: Handler) -> Handler:
        """
        Register a handler, an existing handler for the same key is replaced
        :param target: mapped class, class name or ANY
        :param intent: CREATE or UPDATE
        :param handler: callable(target, data, session)
        :return: handler
        """
        if intent not in (CREATE, UPDATE):
            raise ValueError(f"Invalid association handler intent `{intent}`")
        key = (self.target_name(target), intent)
        restsqla.log.debug(f"Registering association handler {self.format_key(key)}")
        self._handlers[key] = handler
        return handler

    def unregister(self, target: Union[str, type], intent: str) -> Optional[Handler]:
        return self._handlers.pop((self.target_name(target), intent), None)

    def handler(self, target: Union[str, type], intent: str) -> Callable[[Handler], Handler]:
        """
        Decorator to register a handler:

            @registry.handler(Task, CREATE)
            def create_task(target, data, session):
                ...
        """

        def decorator(func: Handler) -> Handler:
            return self.register(target, intent, func)

        return decorator

    def candidates(self, target: Union[str, type], identifier: Any = None) -> Tuple[Tuple[str, str], ...]:
        """
        :return: the keys that are looked up for target and identifier, in lookup order
        """
        intent = self.intent_for(identifier)
        return ((self.target_name(target), intent), (ANY, intent))

    def resolve(self, target: Union[str, type], identifier: Any = None) -> Handler:
        """
        :param target: mapped class or class name
        :param identifier: primary key of the related record, None for new records
        :return: the handler registered for the target, or the fallback handler for the intent
        """
        candidates = self.candidates(target, identifier)
        for key in candidates:
            handler = self._handlers.get(key)
            if handler is not None:
                return handler
        first, fallback = (self.format_key(key) for key in candidates)
        raise AssociationHandlerError(f"Neither `{first}` nor `{fallback}` association handler is registered", candidates=candidates)

    def copy(self) -> "AssociationHandlerRegistry":
        registry = AssociationHandlerRegistry(defaults=False)
        registry._handlers.update(self._handlers)
        return registry

    def __contains__(self, key: Tuple[str, str]) -> bool:
        target, intent = key
        return (self.target_name(target), intent) in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)
