#
# Read queries: where / include / order / limit / offset, compiled to SQLAlchemy statements
#
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from sqlalchemy import func, select
from sqlalchemy.orm import selectinload
from .associations import associations_for
from .attr_parse import parse_attr
from .errors import ValidationError
from .util import column_attributes
from typing import Any, Optional, Tuple, Union

ASC = "ASC"
DESC = "DESC"
QUERY_KEYS = ("where", "include", "order", "limit", "offset")


@dataclass(frozen=True)
class Include:
    """
    Eager load of a relationship
    :param model: the related class
    :param alias: the relationship key
    """

    model: type
    alias: str


@dataclass(frozen=True)
class Query:
    where: Mapping = field(default_factory=dict)
    include: Tuple[Include, ...] = ()
    order: Tuple[Tuple[str, str], ...] = ()
    limit: Optional[int] = None
    offset: Optional[int] = None

    @classmethod
    def coerce(cls, query: Union[None, "Query", Mapping]) -> "Query":
        """
        :param query: None, Query or mapping with the Query fields as keys
        :return: Query
        """
        if query is None:
            return cls()
        if isinstance(query, Query):
            return query
        if not isinstance(query, Mapping):
            raise ValidationError(f"Invalid query: {query!r}")
        invalid = [key for key in query if key not in QUERY_KEYS]
        if invalid:
            raise ValidationError(f"Invalid query parameters: {', '.join(map(str, invalid))}")
        return cls(
            where=dict(query.get("where") or {}),
            include=tuple(cls._coerce_include(include) for include in query.get("include") or ()),
            order=tuple(cls._coerce_order(order) for order in query.get("order") or ()),
            limit=query.get("limit"),
            offset=query.get("offset"),
        )

    @staticmethod
    def _coerce_include(include: Any) -> Include:
        if isinstance(include, Include):
            return include
        if isinstance(include, Mapping):
            return Include(model=include.get("model"), alias=include.get("as", include.get("alias")))
        raise ValidationError(f"Invalid include: {include!r}")

    @staticmethod
    def _coerce_order(order: Any) -> Tuple[str, str]:
        if isinstance(order, str):
            column, direction = order, ASC
        else:
            column, direction = order
        direction = str(direction).upper()
        if direction not in (ASC, DESC):
            raise ValidationError(f"Invalid sort order {direction}")
        return column, direction

    def criteria(self, model: type) -> list:
        """
        :param model: mapped class
        :return: the SQLAlchemy where clauses for `model`
        """
        columns = column_attributes(model)
        result = []
        for name, value in self.where.items():
            if name not in columns:
                raise ValidationError(f'Invalid attribute "{name}" for "{model.__name__}"')
            attr = getattr(model, name)
            if value is None:
                result.append(attr.is_(None))
            elif isinstance(value, (list, tuple, set)):
                result.append(attr.in_([parse_attr(columns[name], item) for item in value]))
            else:
                result.append(attr == parse_attr(columns[name], value))
        return result

    def select(self, model: type):
        """
        :param model: mapped class
        :return: select statement for `model`
        """
        stmt = select(model).where(*self.criteria(model))
        relationships = {association.name for association in associations_for(model)}
        loaded = set()
        for include in self.include:
            if include.alias not in relationships:
                raise ValidationError(f'Invalid relationship "{include.alias}" for "{model.__name__}"')
            if include.alias in loaded:
                continue
            loaded.add(include.alias)
            stmt = stmt.options(selectinload(getattr(model, include.alias)))
        columns = column_attributes(model)
        for name, direction in self.order:
            if name not in columns:
                raise ValidationError(f'Invalid sort attribute "{name}" for "{model.__name__}"')
            attr = getattr(model, name)
            stmt = stmt.order_by(attr.desc() if direction == DESC else attr.asc())
        if self.limit is not None:
            stmt = stmt.limit(self.limit)
        if self.offset:
            stmt = stmt.offset(self.offset)
        return stmt

    def count(self, model: type):
        """
        The count ignores include, order, limit and offset
        :param model: mapped class
        :return: count statement for `model`
        """
        return select(func.count()).select_from(model).where(*self.criteria(model))

    def where_also(self, **where) -> "Query":
        """
        :return: a new Query with additional where conditions
        """
        return replace(self, where={**self.where, **where})


def populate(model: type, query: Union[None, Query, Mapping] = None) -> Query:
    """
    Include every association of `model`, nested associations are not included

    :param model: mapped class
    :param query: query to extend, it is not modified
    :return: new Query
    """
    query = Query.coerce(query)
    includes = tuple(Include(model=association.target, alias=association.name) for association in associations_for(model))
    return replace(query, include=query.include + includes)
