import threading

import pytest
from sqlalchemy import func, select

from restsqla import (
    AssociationHandlerRegistry,
    CREATE,
    NotFoundError,
    OperationCancelledError,
    RestService,
    UPDATE,
    ValidationError,
)
from sample_models import Tag, Task, User


def count(db, model) -> int:
    return db.session.scalar(select(func.count()).select_from(model))


def test_persist_creates_user_without_associations(db, service: RestService) -> None:
    user = service.persist(User, {"name": "Foo Bar", "email": "foo@bar.com"})

    assert isinstance(user.id, int)
    assert user.name == "Foo Bar"
    assert user.email == "foo@bar.com"
    assert user.Tasks == []
    assert count(db, User) == 4


def test_persist_rejects_empty_payload(db, service: RestService, monkeypatch: pytest.MonkeyPatch) -> None:
    def fail(*args, **kwargs):
        raise AssertionError("the store must not be called")

    monkeypatch.setattr(db.session, "get", fail)
    monkeypatch.setattr(db.session, "add", fail)

    with pytest.raises(ValidationError) as exc_info:
        service.persist(User, {})
    assert "An empty payload received from the request." in exc_info.value.message
    assert exc_info.value.status_code == 400


def test_persist_rejects_non_mapping_payload(service: RestService) -> None:
    with pytest.raises(ValidationError):
        service.persist(User, ["name"])


def test_persist_creates_to_many_children(db, service: RestService) -> None:
    user = service.persist(User, {"name": "New Foo", "Tasks": [{"name": "Task"}]})

    tasks = db.session.scalars(select(Task).where(Task.user_id == user.id)).all()
    assert [task.name for task in tasks] == ["Task"]
    assert tasks[0].user_id == user.id
    assert [task.name for task in user.Tasks] == ["Task"]


def test_persist_attaches_to_one_reference_without_mutating_it(db, service: RestService) -> None:
    task = service.persist(Task, {"name": "New Task", "User": {"id": 2}})

    assert task.user_id == 2
    grace = db.session.get(User, 2)
    assert grace.name == "Grace"
    assert grace.email == "grace@example.com"
    assert task in grace.Tasks


def test_persist_attaches_to_one_bare_identifier(service: RestService) -> None:
    task = service.persist(Task, {"name": "New Task", "User": "3"})
    assert task.user_id == 3
    assert task.User.name == "Linus"


def test_persist_creates_to_one_before_the_root(db, service: RestService) -> None:
    task = service.persist(Task, {"name": "Onboarding", "User": {"name": "Newcomer", "email": "new@example.com"}})

    assert task.user_id is not None
    user = db.session.get(User, task.user_id)
    assert user.name == "Newcomer"
    assert count(db, User) == 4


def test_persist_updates_to_one_with_fields(db, service: RestService) -> None:
    task = service.persist(Task, {"name": "Rename", "User": {"id": 1, "name": "Ada Lovelace"}})

    assert task.user_id == 1
    assert db.session.get(User, 1).name == "Ada Lovelace"
    assert count(db, User) == 3


def test_persist_rejects_list_for_to_one(service: RestService) -> None:
    with pytest.raises(ValidationError) as exc_info:
        service.persist(Task, {"name": "x", "User": [1, 2]})
    assert "can only hold a single item" in exc_info.value.message


def test_persist_rejects_object_for_to_many(service: RestService) -> None:
    with pytest.raises(ValidationError) as exc_info:
        service.persist(User, {"name": "x", "Tasks": {"name": "single"}})
    assert "Provide a list" in exc_info.value.message


def test_persist_attaches_to_many_references(db, service: RestService) -> None:
    user = service.persist(User, {"name": "Owner", "Tasks": [3, {"id": 4}]})

    assert sorted(task.id for task in user.Tasks) == [3, 4]
    assert db.session.get(Task, 3).name == "Release"
    assert db.session.get(Task, 4).name == "Unassigned"
    # grace lost task 3, nothing else changed
    assert [task.id for task in db.session.get(User, 2).Tasks] == []


def test_persist_attach_is_idempotent(db, service: RestService) -> None:
    user = service.persist(User, {"name": "Owner", "Tasks": [4, {"id": 4}, 4]})

    assert [task.id for task in user.Tasks] == [4]
    assert count(db, Task) == 4


def test_persist_attach_keeps_existing_links(db, service: RestService) -> None:
    user = service.persist(User, {"id": 1, "Tasks": [{"name": "Third"}]})

    assert sorted(task.name for task in user.Tasks) == ["Review", "Third", "Write docs"]


def test_persist_mixes_references_and_creations(db, service: RestService) -> None:
    user = service.persist(User, {"name": "Mixed", "Tasks": [4, {"name": "Fresh"}]})

    assert sorted(task.name for task in user.Tasks) == ["Fresh", "Unassigned"]
    assert count(db, Task) == 5


def test_persist_missing_reference_aborts_everything(db, service: RestService) -> None:
    with pytest.raises(NotFoundError) as exc_info:
        service.persist(User, {"name": "New User", "Tasks": [{"id": 999}]})

    assert exc_info.value.status_code == 404
    assert count(db, User) == 3
    assert db.session.scalars(select(User).where(User.name == "New User")).first() is None


def test_persist_failure_rolls_back_created_relations(db, service: RestService) -> None:
    payload = {"name": "Partial", "Tasks": [{"name": "Created"}, {"name": None}]}

    with pytest.raises(Exception):
        service.persist(User, payload)

    assert count(db, User) == 3
    assert count(db, Task) == 4


def test_persist_failure_resets_the_new_identity(service: RestService, monkeypatch: pytest.MonkeyPatch) -> None:
    plans = []
    plan = service.plan
    monkeypatch.setattr(service, "plan", lambda *args: plans.append(plan(*args)) or plans[-1])

    with pytest.raises(NotFoundError):
        service.persist(User, {"name": "Doomed", "Tasks": [{"id": 999}]})

    assert plans[0].is_new
    assert plans[0].instance.id is None


def test_persist_update_leaves_omitted_associations(db, service: RestService) -> None:
    user = service.persist(User, {"id": 1, "email": "ada@lovelace.org"})

    assert user.email == "ada@lovelace.org"
    assert sorted(task.id for task in user.Tasks) == [1, 2]


def test_persist_update_of_missing_record(service: RestService) -> None:
    with pytest.raises(NotFoundError):
        service.persist(User, {"id": 42, "name": "Nobody"})


def test_persist_creates_many_to_many_entries(db, service: RestService) -> None:
    task = service.persist(Task, {"name": "Tagged", "Tags": [1, {"name": "new-tag"}]})

    assert sorted(tag.name for tag in task.Tags) == ["new-tag", "urgent"]
    assert count(db, Tag) == 3
    assert task in db.session.get(Tag, 1).Tasks


def test_persist_uses_registered_handlers(db) -> None:
    handlers = AssociationHandlerRegistry()
    calls = []

    @handlers.handler(Task, CREATE)
    def create_task(target, data, session):
        calls.append(dict(data))
        task = target(name=data["name"].upper(), user_id=data["user_id"], type="custom")
        session.add(task)
        return task

    service = RestService(db, handlers=handlers)
    user = service.persist(User, {"name": "Custom", "Tasks": [{"name": "shout"}]})

    assert calls == [{"name": "shout", "user_id": user.id}]
    assert [(task.name, task.type) for task in user.Tasks] == [("SHOUT", "custom")]


def test_persist_update_handler_for_to_many_entries(db, service: RestService) -> None:
    user = service.persist(User, {"name": "Adopter", "Tasks": [{"id": 4, "name": "Adopted"}]})

    task = db.session.get(Task, 4)
    assert task.name == "Adopted"
    assert task.user_id == user.id


def test_persist_without_fallback_handler_fails(db) -> None:
    handlers = AssociationHandlerRegistry(defaults=False)
    handlers.register("*", UPDATE, lambda target, data, session: None)
    service = RestService(db, handlers=handlers)

    with pytest.raises(TypeError):
        service.persist(User, {"name": "x", "Tasks": [{"name": "y"}]})
    assert count(db, User) == 3


def test_persist_runs_to_one_tasks_first(db, service: RestService, monkeypatch: pytest.MonkeyPatch) -> None:
    plans = []
    plan = service.plan

    def record_plan(model, payload, session):
        result = plan(model, payload, session)
        plans.append(result)
        return result

    monkeypatch.setattr(service, "plan", record_plan)
    service.persist(Task, {"name": "Ordered", "User": 1, "Tags": [2]})

    assert len(plans[0].pre_save) == 1
    assert len(plans[0].post_save) == 1
    tasks = plans[0].tasks()
    assert tasks[1] is plans[0].save
    assert tasks[0] is plans[0].pre_save[0]


def test_persist_cancelled(db, service: RestService) -> None:
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(OperationCancelledError) as exc_info:
        service.persist(User, {"name": "Cancelled"}, cancel=cancel)
    assert exc_info.value.status_code == 408
    assert count(db, User) == 3


def test_persist_parses_attribute_values(service: RestService) -> None:
    task = service.persist(Task, {"name": "Parsed", "done": "true", "user_id": "2"})
    assert task.done is True
    assert task.user_id == 2


def test_persist_rejects_invalid_attribute_values(db, service: RestService) -> None:
    with pytest.raises(ValidationError):
        service.persist(Task, {"name": "Invalid", "user_id": "two"})
    assert count(db, Task) == 4
