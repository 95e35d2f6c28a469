#
# Association metadata, derived from the relationships declared on the mapped classes
#
from dataclasses import dataclass, field
from functools import lru_cache
from sqlalchemy import inspect
from sqlalchemy.orm import RelationshipProperty
from sqlalchemy.orm.interfaces import MANYTOMANY, MANYTOONE, ONETOMANY
from .errors import ValidationError
from .util import collection_name, is_mapped_class
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

TO_ONE = "ToOne"
TO_MANY = "ToMany"
TO_MANY_THROUGH = "ToManyThrough"

KINDS = {MANYTOONE: TO_ONE, ONETOMANY: TO_MANY, MANYTOMANY: TO_MANY_THROUGH}


@dataclass(frozen=True)
class Association:
    """
    Directional relation between a source and a target mapped class

    :param source: the class that declares the relationship
    :param target: the related class
    :param name: relationship key, used as payload key
    :param kind: TO_ONE, TO_MANY or TO_MANY_THROUGH
    :param uselist: False for scalar relationships
    """

    source: type
    target: type
    name: str
    kind: str
    relationship: RelationshipProperty = field(repr=False, compare=False)
    uselist: bool = True

    @classmethod
    def from_relationship(cls, relationship: RelationshipProperty) -> "Association":
        return cls(
            source=relationship.parent.class_,
            target=relationship.mapper.class_,
            name=relationship.key,
            kind=KINDS[relationship.direction],
            relationship=relationship,
            uselist=bool(relationship.uselist),
        )

    def _key_pairs(self) -> List[Tuple[str, str]]:
        """
        :return: (source attribute, target attribute) pairs of the join columns
        """
        if self.kind == TO_MANY_THROUGH:
            return []
        source_mapper = inspect(self.source)
        target_mapper = inspect(self.target)
        return [
            (source_mapper.get_property_by_column(local).key, target_mapper.get_property_by_column(remote).key)
            for local, remote in self.relationship.local_remote_pairs
        ]

    @property
    def identifier_fields(self) -> Tuple[str, ...]:
        """
        :return: the foreign key attribute names: on the source for TO_ONE, on the target for TO_MANY
        """
        if self.kind == TO_ONE:
            return tuple(source for source, _ in self._key_pairs())
        return tuple(target for _, target in self._key_pairs())

    def foreign_key_values(self, instance: Any) -> Dict[str, Any]:
        """
        :param instance: source instance, it must have a primary key
        :return: the target foreign key values that point to `instance` (TO_MANY only)
        """
        if self.kind != TO_MANY:
            return {}
        return {target: getattr(instance, source) for source, target in self._key_pairs()}

    def reference_values(self, related: Any) -> Dict[str, Any]:
        """
        :param related: target instance
        :return: the source foreign key values that point to `related` (TO_ONE only)
        """
        if self.kind != TO_ONE:
            return {}
        return {source: getattr(related, target) for source, target in self._key_pairs()}

    def get(self, instance: Any) -> Any:
        return getattr(instance, self.name)

    def set(self, instance: Any, value: Any) -> None:
        setattr(instance, self.name, value)

    def add(self, instance: Any, related: Sequence[Any]) -> List[Any]:
        """
        Attach `related` to `instance` without removing the existing links

        :param instance: source instance
        :param related: target instances
        :return: the attached instances, in order and without duplicates
        """
        result = []
        for item in related:
            if not any(item is other for other in result):
                result.append(item)

        if not self.uselist:
            if len(result) > 1:
                raise ValidationError(f'"{self.name}" can only hold a single item')
            if result:
                self.set(instance, result[0])
            return result

        collection = self.get(instance)
        for item in result:
            if item not in collection:
                collection.append(item)
        return result

    def remove(self, instance: Any, related: Sequence[Any]) -> None:
        """
        Detach `related` from `instance`, the related records themselves are kept
        """
        if not self.uselist:
            current = self.get(instance)
            if current is not None and any(current is item for item in related):
                self.set(instance, None)
                for name in self.identifier_fields:
                    setattr(instance, name, None)
            return

        collection = self.get(instance)
        for item in related:
            if item in collection:
                collection.remove(item)

    def link(self, instance: Any, related: Any) -> None:
        """
        Point `instance` to `related`, TO_ONE foreign keys are applied immediately
        """
        if self.kind == TO_ONE:
            self.set(instance, related)
            for name, value in self.reference_values(related).items():
                setattr(instance, name, value)
        else:
            self.add(instance, [related])

    def matches(self, target: Union[str, type]) -> bool:
        """
        :param target: mapped class, relationship key, collection name or class name
        :return: True if `target` designates this association
        """
        if is_mapped_class(target):
            return self.target is target
        name = str(target).lower()
        return name in (self.name.lower(), collection_name(self.target).lower(), self.target.__name__.lower())


@lru_cache(maxsize=128)
def associations_for(model: type) -> Tuple[Association, ...]:
    """
    :param model: mapped class
    :return: the associations of `model`, in declaration order
    """
    return tuple(Association.from_relationship(relationship) for relationship in inspect(model).relationships)


def find_association(model: type, target: Union[str, type]) -> Optional[Association]:
    """
    :param model: mapped class
    :param target: related class or name
    :return: the first association of `model` that matches `target`, None if there is none
    """
    if not is_mapped_class(target):
        # a relationship key takes precedence over the target names
        for association in associations_for(model):
            if association.name == target:
                return association
    for association in associations_for(model):
        if association.matches(target):
            return association
    return None
