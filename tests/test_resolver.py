import pytest

from restsqla import DefaultResolver, Deserializer, InvalidTypeError, Resolver, RestService, Serializer
from restsqla.resolver import DESERIALIZERS, SERIALIZERS, SERVICES
from sample_models import Foo, Task, User


class TaskService(RestService):
    pass


class CountingResolver(Resolver):
    def __init__(self, db) -> None:
        super().__init__(db)
        self.calls = []

    def resolve(self, type_, name):
        self.calls.append((type_, name))
        if name == "tasks":
            return f"{type_} for {name}"
        return None


def test_normalize_type_name() -> None:
    assert Resolver.normalize_type_name(User) == "users"
    assert Resolver.normalize_type_name("Users") == "Users"
    with pytest.raises(InvalidTypeError) as exc_info:
        Resolver.normalize_type_name(42)
    assert "You passed a `int`." in exc_info.value.message


def test_resolve_model(db) -> None:
    resolver = Resolver(db)

    assert resolver.resolve_model("users") is User
    assert resolver.resolve_model("USERS") is User
    assert resolver.resolve_model("Task") is Task
    assert resolver.resolve_model("foos") is Foo
    assert resolver.resolve_model(User) is User
    assert resolver.resolve_model("bars") is None


def test_base_resolver_resolves_nothing(db) -> None:
    resolver = Resolver(db)
    assert resolver.resolve_service("users") is None
    assert resolver.resolve_serializer(User) is None
    assert resolver.resolve_deserializer("users") is None


def test_resolved_modules_are_cached(db) -> None:
    resolver = CountingResolver(db)

    assert resolver.resolve_service(Task) == "services for tasks"
    assert resolver.resolve_service("tasks") == "services for tasks"
    assert resolver.get_from_cache(SERVICES, "tasks") == "services for tasks"
    assert resolver.calls == [(SERVICES, "tasks")]

    resolver.clear_cache()
    resolver.resolve_service("tasks")
    assert resolver.calls == [(SERVICES, "tasks"), (SERVICES, "tasks")]


def test_unresolved_modules_are_not_cached(db) -> None:
    resolver = CountingResolver(db)
    resolver.resolve_serializer("users")
    resolver.resolve_serializer("users")
    assert resolver.calls == [(SERIALIZERS, "users"), (SERIALIZERS, "users")]


def test_default_resolver_builds_defaults(db) -> None:
    resolver = DefaultResolver(db)

    service = resolver.resolve_service("users")
    assert type(service) is RestService
    assert service.db is db
    assert resolver.resolve_service(User) is service
    assert isinstance(resolver.resolve_serializer("users"), Serializer)
    assert isinstance(resolver.resolve_deserializer("users"), Deserializer)


def test_default_resolver_overrides(db) -> None:
    serializer = Serializer()
    resolver = DefaultResolver(db, services={"tasks": TaskService}, serializers={"tasks": serializer})

    assert isinstance(resolver.resolve_service(Task), TaskService)
    assert type(resolver.resolve_service(User)) is RestService
    assert resolver.resolve_serializer("tasks") is serializer

    resolver.register(SERIALIZERS, Task, Serializer)
    assert resolver.resolve_serializer("tasks") is not serializer


def test_default_resolver_unknown_module_type(db) -> None:
    resolver = DefaultResolver(db)
    with pytest.raises(ValueError) as exc_info:
        resolver.resolve("controllers", "users")
    assert str(exc_info.value) == "Can not resolve factory module for `controllers` with name `users`."
    assert resolver.resolve(DESERIALIZERS, "users") is not None
