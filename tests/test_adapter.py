import pytest
from sqlalchemy import func, select

from restsqla import (
    Deserializer,
    InvalidTypeError,
    NotFoundError,
    RestAdapter,
    RestService,
    ValidationError,
)
from restsqla.errors import InvalidIdentifierError
from sample_models import Foo, Task, User


def count(db, model) -> int:
    return db.session.scalar(select(func.count()).select_from(model))


@pytest.fixture
def adapter(db) -> RestAdapter:
    return RestAdapter(db)


class UpperDeserializer(Deserializer):
    def deserialize(self, adapter, type_, payload):
        return {key: value.upper() if isinstance(value, str) else value for key, value in payload.items()}


def test_adapter_requires_db() -> None:
    with pytest.raises(TypeError):
        RestAdapter(None)


def test_model_for(adapter: RestAdapter) -> None:
    assert adapter.model_for("users") is User
    assert adapter.model_for(Task) is Task

    with pytest.raises(InvalidTypeError) as exc_info:
        adapter.model_for(3)
    assert "Type must be a String or a mapped class. You passed a `int`." in exc_info.value.message

    with pytest.raises(NotFoundError) as exc_info:
        adapter.model_for("bars")
    assert "Could not find Model for type `bars`." in exc_info.value.message


def test_normalize_payload(adapter: RestAdapter) -> None:
    assert adapter.normalize_payload("users", {"name": "x"}) == {"name": "x"}
    for payload in (None, {}, []):
        with pytest.raises(ValidationError):
            adapter.normalize_payload("users", payload)


def test_find_with_pagination(adapter: RestAdapter) -> None:
    result = adapter.find("tasks", {"page": "2", "size": "3", "sort": "id", "order": "asc"})

    assert [task["id"] for task in result["result"]] == [4]
    assert result["meta"] == {"size": 3, "page": 2, "totalSize": 4, "totalPages": 2}
    assert result["status"] == 200


def test_find_defaults_and_filters(adapter: RestAdapter) -> None:
    result = adapter.find("tasks", {"user_id": "1", "sort": "id", "order": "sideways"})

    assert [task["id"] for task in result["result"]] == [2, 1]
    assert result["meta"] == {"size": 30, "page": 1, "totalSize": 2, "totalPages": 1}
    assert result["result"][0]["User"]["name"] == "Ada"


def test_find_page_size_is_capped(app, adapter: RestAdapter) -> None:
    app.config["MAX_PAGE_SIZE"] = 2
    result = adapter.find("users", {"size": "50"})
    assert result["meta"]["size"] == 2
    assert result["meta"]["totalPages"] == 2


def test_find_rejects_invalid_page(adapter: RestAdapter) -> None:
    with pytest.raises(ValidationError):
        adapter.find("users", {"page": "first"})
    with pytest.raises(ValidationError):
        adapter.find("users", {"size": "0"})


def test_find_by_id(adapter: RestAdapter) -> None:
    result = adapter.find_by_id("users", "1")

    assert result["result"]["name"] == "Ada"
    assert sorted(task["name"] for task in result["result"]["Tasks"]) == ["Review", "Write docs"]


def test_find_by_id_invalid(adapter: RestAdapter) -> None:
    with pytest.raises(InvalidIdentifierError):
        adapter.find_by_id("users", "one")
    with pytest.raises(NotFoundError):
        adapter.find_by_id("users", 100)


def test_create_reloads_the_record(db, adapter: RestAdapter) -> None:
    result = adapter.create("users", {"name": "New Foo", "Tasks": [{"name": "Task"}]})

    assert result["status"] == 201
    assert result["result"]["name"] == "New Foo"
    assert [task["name"] for task in result["result"]["Tasks"]] == ["Task"]
    assert result["result"]["Tasks"][0]["user_id"] == result["result"]["id"]


def test_create_uses_the_deserializer(db) -> None:
    adapter = RestAdapter(db)
    adapter.resolver.register("deserializers", "users", UpperDeserializer)

    result = adapter.create("users", {"name": "quiet"})
    assert result["result"]["name"] == "QUIET"


def test_update_with_id(adapter: RestAdapter) -> None:
    result = adapter.update("users", "2", {"email": "grace@navy.mil"})

    assert result["result"]["id"] == 2
    assert result["result"]["email"] == "grace@navy.mil"
    assert result["result"]["name"] == "Grace"


def test_update_with_payload_only(adapter: RestAdapter) -> None:
    result = adapter.update("users", {"id": 3, "name": "Torvalds"})
    assert result["result"]["name"] == "Torvalds"


def test_update_without_id(adapter: RestAdapter) -> None:
    with pytest.raises(ValidationError) as exc_info:
        adapter.update("users", {"name": "Anonymous"})
    assert "without specifying its id" in exc_info.value.message


def test_delete(db, adapter: RestAdapter) -> None:
    result = adapter.delete("tasks", "4")
    assert result["status"] == 204
    assert count(db, Task) == 3


def test_find_sub_resources(adapter: RestAdapter) -> None:
    result = adapter.find_sub_resources("users", "1", "tasks")
    assert sorted(task["name"] for task in result["result"]) == ["Review", "Write docs"]


def test_find_sub_resource_by_id(adapter: RestAdapter) -> None:
    result = adapter.find_sub_resource_by_id("users", "1", "Tasks", "2")
    assert result["result"]["name"] == "Review"

    with pytest.raises(NotFoundError):
        adapter.find_sub_resource_by_id("users", "1", "Tasks", "3")
    with pytest.raises(TypeError):
        adapter.find_sub_resource_by_id("users", "1", "Tasks", None)


def test_create_sub_resources(db, adapter: RestAdapter) -> None:
    result = adapter.create_sub_resources("users", "2", "tasks", [{"name": "Deploy"}, {"id": 4}])

    assert result["status"] == 201
    assert [task["name"] for task in result["result"]] == ["Unassigned", "Deploy"]


def test_delete_sub_resources_by_id(db, adapter: RestAdapter) -> None:
    result = adapter.delete_sub_resources("users", "1", "tasks", "2")

    assert result["meta"] == {"count": 1}
    assert count(db, Task) == 3


def test_delete_sub_resources_by_filter(db, adapter: RestAdapter) -> None:
    result = adapter.delete_sub_resources("users", "1", "tasks", {"name": "Write docs"})
    assert result["meta"] == {"count": 1}
    assert db.session.get(Task, 1) is None


def test_services_can_be_overridden(db) -> None:
    calls = []

    class AuditedService(RestService):
        def persist(self, model, payload, cancel=None):
            calls.append((model, dict(payload)))
            return super().persist(model, payload, cancel)

    adapter = RestAdapter(db, services={"foos": AuditedService})
    adapter.create(Foo, {"name": "audited"})
    adapter.create("users", {"name": "not audited"})

    assert calls == [(Foo, {"name": "audited"})]


def test_execute_unknown_method(adapter: RestAdapter) -> None:
    with pytest.raises(TypeError) as exc_info:
        adapter._execute("upsert", "users")
    assert "Can not execute method upsert" in str(exc_info.value)


def test_find_serializes_associations(adapter: RestAdapter) -> None:
    result = adapter.find("users", {"sort": "id", "order": "asc"})

    ada = result["result"][0]
    assert ada["name"] == "Ada"
    assert sorted(task["id"] for task in ada["Tasks"]) == [1, 2]
