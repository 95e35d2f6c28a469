#
# Relation persistence strategies
#
# A strategy inspects the payload of one association and returns either None, when the
# payload doesn't carry data for it, or a task: a callable that receives the session of
# the active transaction and performs the writes for the association.
#
from collections.abc import Mapping
from typing import Any, Callable, Dict, Optional
import restsqla
from .associations import Association, TO_MANY, TO_MANY_THROUGH, TO_ONE
from .errors import ValidationError
from .handlers import AssociationHandlerRegistry
from .util import get_identity, get_instance, is_empty, is_reference

Task = Callable[[Any], Any]


def persist_to_one(association: Association, instance: Any, payload: Mapping, handlers: AssociationHandlerRegistry) -> Optional[Task]:
    """
    Create the task for a TO_ONE association, it has to run before `instance` is saved
    because the foreign key is stored on the `instance` row

    - a bare identifier or an object that only holds the primary key is attached
    - an object without primary key is written by the create handler
    - an object with primary key and other fields is written by the update handler

    :param association: TO_ONE association
    :param instance: root instance
    :param payload: root payload
    :param handlers: association handler registry
    :return: task or None
    """
    value = payload.get(association.name)
    if is_empty(value):
        return None
    if isinstance(value, (list, tuple)):
        raise ValidationError(f'"{association.name}" relationship can only hold a single item')

    target = association.target
    if not isinstance(value, Mapping) or is_reference(target, value):
        identifier = get_identity(target, value) if isinstance(value, Mapping) else value

        def attach(session):
            related = get_instance(session, target, identifier)
            association.link(instance, related)
            return related

        return attach

    handler = handlers.resolve(target, get_identity(target, value))

    def write(session):
        related = handler(target, value, session)
        # the related row needs its primary key before the root can reference it
        session.flush()
        association.link(instance, related)
        return related

    return write


def persist_to_many(association: Association, instance: Any, payload: Mapping, handlers: AssociationHandlerRegistry) -> Optional[Task]:
    """
    Create the task for a TO_MANY or TO_MANY_THROUGH association, it has to run after `instance`
    has been saved because the related rows reference its primary key

    Bare identifiers and objects that only hold the primary key are attached to the existing links.
    Every other entry becomes a separate entry task, written by the handler with the foreign key
    set to the primary key of `instance`. The entry tasks are flushed as one batch.

    :param association: TO_MANY or TO_MANY_THROUGH association
    :param instance: root instance
    :param payload: root payload
    :param handlers: association handler registry
    :return: task or None
    """
    value = payload.get(association.name)
    if is_empty(value):
        return None
    if isinstance(value, Mapping) and not association.uselist:
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f'Provide a list for the "{association.name}" relationship')

    target = association.target
    references = []
    entry_tasks = []
    for entry in value:
        if not isinstance(entry, Mapping):
            references.append(entry)
        elif is_reference(target, entry):
            references.append(get_identity(target, entry))
        else:
            entry_tasks.append(_entry_task(association, instance, entry, handlers))

    def persist_entries(session):
        existing = [get_instance(session, target, identifier) for identifier in references]
        created = [task(session) for task in entry_tasks]
        session.flush()
        restsqla.log.debug(f"{association.name}: attached {len(existing)}, written {len(created)}")
        return association.add(instance, existing + created)

    return persist_entries


def _entry_task(association: Association, instance: Any, entry: Mapping, handlers: AssociationHandlerRegistry) -> Task:
    target = association.target
    handler = handlers.resolve(target, get_identity(target, entry))

    def persist_entry(session):
        data = dict(entry)
        data.update(association.foreign_key_values(instance))
        return handler(target, data, session)

    return persist_entry


STRATEGIES: Dict[str, Callable[..., Optional[Task]]] = {
    TO_ONE: persist_to_one,
    TO_MANY: persist_to_many,
    TO_MANY_THROUGH: persist_to_many,
}
