#
# RestService: association aware persistence of mapped classes
#
from collections.abc import Mapping
from dataclasses import dataclass, field
from sqlalchemy import delete as sql_delete
from sqlalchemy.orm import with_parent
import restsqla
from .associations import TO_MANY, TO_ONE, find_association, associations_for
from .errors import NotFoundError, OperationCancelledError, ValidationError
from .handlers import AssociationHandlerRegistry
from .query import Query, populate
from .strategies import STRATEGIES
from .tx import Transaction
from .util import column_values, get_identity, get_instance, primary_key_names, reset_identity
from typing import Any, Callable, Dict, List, Optional, Union


@dataclass
class PersistPlan:
    """
    The ordered tasks of one persist call:
    pre_save (TO_ONE associations), save (the root) and post_save (TO_MANY associations)
    """

    instance: Any
    is_new: bool
    save: Callable
    pre_save: List[Callable] = field(default_factory=list)
    post_save: List[Callable] = field(default_factory=list)

    def tasks(self) -> List[Callable]:
        return [*self.pre_save, self.save, *self.post_save]


class RestService:
    """
    Find, persist and delete records of mapped classes, together with their associations

    :param db: Flask-SQLAlchemy extension, or any object with a `session` attribute
    :param handlers: association handler registry, defaults to a registry with the default handlers
    """

    strategies: Dict[str, Callable] = STRATEGIES

    def __init__(self, db, handlers: Optional[AssociationHandlerRegistry] = None) -> None:
        if db is None:
            raise TypeError("You must define a db for the RestService.")
        self.db = db
        self.handlers = handlers if handlers is not None else AssociationHandlerRegistry()

    @property
    def session(self):
        return self.db.session

    def transaction(self, work: Optional[Callable[[Transaction], Any]] = None) -> Any:
        """
        :param work: callable that receives the transaction
        :return: a Transaction context manager if `work` is None, the result of `work` otherwise
        """
        transaction = Transaction(self.session)
        if work is None:
            return transaction
        with transaction as tx:
            return work(tx)

    def populate(self, model: type, query: Union[None, Query, Mapping] = None) -> Query:
        return populate(model, query)

    def find(self, model: type, query: Union[None, Query, Mapping] = None) -> Dict[str, Any]:
        """
        The rows are loaded with all their associations

        :param model: mapped class
        :param query: Query or mapping
        :return: {"rows": matching instances, "count": total number of matches}
        """
        query = self.populate(model, query)
        rows = self.session.scalars(query.select(model)).all()
        count = self.session.scalar(query.count(model))
        return {"rows": list(rows), "count": count}

    def find_one(self, model: type, query: Union[None, Query, Mapping] = None) -> Any:
        """
        :param model: mapped class
        :param query: Query or mapping
        :return: the first matching instance, loaded with all its associations
        """
        query = self.populate(model, query)
        instance = self.session.scalars(query.select(model)).first()
        if instance is None:
            raise NotFoundError(f"Can not find model '{model.__name__}'.")
        return instance

    def build(self, model: type, payload: Mapping, session) -> Any:
        """
        Build the root instance from the column values of the payload,
        a payload with a primary key updates the existing record

        :return: (instance, is_new)
        """
        values = column_values(model, payload)
        identifier = get_identity(model, payload)
        if identifier is None:
            return model(**values), True
        instance = get_instance(session, model, identifier)
        primary_keys = primary_key_names(model)
        for name, value in values.items():
            if name not in primary_keys:
                setattr(instance, name, value)
        return instance, False

    def plan(self, model: type, payload: Mapping, session) -> PersistPlan:
        """
        Build the root instance and collect the association tasks
        :param model: mapped class
        :param payload: root payload
        :param session: session of the active transaction
        :return: PersistPlan
        """
        instance, is_new = self.build(model, payload, session)

        def save(session):
            session.add(instance)
            session.flush()
            return instance

        plan = PersistPlan(instance=instance, is_new=is_new, save=save)
        for association in associations_for(model):
            strategy = self.strategies[association.kind]
            task = strategy(association, instance, payload, self.handlers)
            if task is None:
                continue
            if association.kind == TO_ONE:
                plan.pre_save.append(task)
            else:
                plan.post_save.append(task)
        restsqla.log.debug(f"{model.__name__} persist plan: {len(plan.pre_save)} pre save, {len(plan.post_save)} post save tasks")
        return plan

    def persist(self, model: type, payload: Mapping, cancel=None) -> Any:
        """
        Create or update a record together with the related records in the payload,
        all writes happen in one transaction

        :param model: mapped class
        :param payload: attributes and association data
        :param cancel: optional threading.Event-like token, the transaction rolls back when it is set
        :return: the persisted instance
        """
        if not isinstance(payload, Mapping) or not payload:
            raise ValidationError("An empty payload received from the request.")

        plan = None
        try:
            with self.transaction() as tx:
                plan = self.plan(model, payload, tx.session)
                for task in plan.tasks():
                    if cancel is not None and cancel.is_set():
                        raise OperationCancelledError(f"Persisting {model.__name__} has been cancelled")
                    task(tx.session)
        except Exception:
            # the insert of the root was rolled back, with the transaction or with its savepoint
            if plan is not None and plan.is_new:
                reset_identity(plan.instance)
            raise
        return plan.instance

    def delete(self, model: type, id: Any) -> None:
        """
        :param model: mapped class
        :param id: primary key
        """
        with self.transaction() as tx:
            instance = get_instance(tx.session, model, id)
            tx.session.delete(instance)

    def delete_all(self, model: type, query: Union[None, Query, Mapping] = None) -> int:
        """
        :param model: mapped class
        :param query: Query or mapping, only the where conditions are used
        :return: number of deleted rows
        """
        query = Query.coerce(query)
        with self.transaction() as tx:
            result = tx.session.execute(sql_delete(model).where(*query.criteria(model)))
            return result.rowcount

    def resolve_sub_resource(self, model: type, id: Any, sub_type: Union[str, type], session):
        """
        :return: (association, parent instance)
        """
        association = find_association(model, sub_type)
        if association is None:
            name = getattr(sub_type, "__name__", sub_type)
            raise NotFoundError(f"Can not find association '{name}' on model '{model.__name__}'.")
        parent = get_instance(session, model, id)
        return association, parent

    def _sub_resource_select(self, model: type, association, parent, query):
        relationship = getattr(model, association.name)
        return Query.coerce(query).select(association.target).where(with_parent(parent, relationship))

    def find_sub_resources(self, model: type, id: Any, sub_type: Union[str, type], query: Union[None, Query, Mapping] = None) -> list:
        """
        :param model: mapped class of the parent
        :param id: primary key of the parent
        :param sub_type: related class or name
        :param query: Query or mapping applied to the related records
        :return: the related instances
        """
        association, parent = self.resolve_sub_resource(model, id, sub_type, self.session)
        return list(self.session.scalars(self._sub_resource_select(model, association, parent, query)).all())

    def create_sub_resources(self, model: type, id: Any, sub_type: Union[str, type], payload: Any) -> list:
        """
        Attach existing records (entries with a primary key) and create new ones (entries without)

        :param model: mapped class of the parent
        :param id: primary key of the parent
        :param sub_type: related class or name
        :param payload: object or list of objects and identifiers
        :return: the attached and created instances
        """
        if isinstance(payload, Mapping):
            entries = [payload]
        elif isinstance(payload, (list, tuple)):
            entries = list(payload)
        else:
            raise ValidationError("Sub resources must be an object or an array.")

        with self.transaction() as tx:
            session = tx.session
            association, parent = self.resolve_sub_resource(model, id, sub_type, session)
            target = association.target
            existing = []
            created = []
            for entry in entries:
                if not isinstance(entry, Mapping):
                    existing.append(get_instance(session, target, entry))
                    continue
                identifier = get_identity(target, entry)
                if identifier is not None:
                    existing.append(get_instance(session, target, identifier))
                    continue
                handler = self.handlers.resolve(target)
                data = dict(entry)
                data.update(association.foreign_key_values(parent))
                created.append(handler(target, data, session))
            session.flush()
            return association.add(parent, existing + created)

    def delete_sub_resources(self, model: type, id: Any, sub_type: Union[str, type], query: Union[None, Query, Mapping] = None) -> int:
        """
        Records owned by the parent (TO_MANY) are deleted,
        TO_ONE and TO_MANY_THROUGH records are only detached from the parent

        :param model: mapped class of the parent
        :param id: primary key of the parent
        :param sub_type: related class or name
        :param query: Query or mapping to select the related records
        :return: number of deleted or detached records
        """
        with self.transaction() as tx:
            session = tx.session
            association, parent = self.resolve_sub_resource(model, id, sub_type, session)
            records = session.scalars(self._sub_resource_select(model, association, parent, query)).all()
            if association.kind == TO_MANY:
                for record in records:
                    session.delete(record)
            else:
                association.remove(parent, records)
            session.flush()
            return len(records)
