from typing import Iterator

import pytest
from flask import Flask
from sqlalchemy import event

from restsqla import DB, RestService
from sample_models import Tag, Task, User


@pytest.fixture
def app() -> Iterator[Flask]:
    app = Flask("restsqla_tests")
    app.config.update(SQLALCHEMY_DATABASE_URI="sqlite://", TESTING=True)
    DB.init_app(app)
    with app.app_context():
        enable_savepoints(DB.engine)
        DB.create_all()
        seed()
        yield app
        DB.session.remove()
        DB.drop_all()


@pytest.fixture
def db(app: Flask):
    return DB


@pytest.fixture
def service(db) -> RestService:
    return RestService(db)


def enable_savepoints(engine) -> None:
    """
    pysqlite doesn't emit BEGIN itself before a SAVEPOINT, let SQLAlchemy do it
    """

    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(connection):
        connection.exec_driver_sql("BEGIN")


def seed() -> None:
    ada = User(id=1, name="Ada", email="ada@example.com")
    grace = User(id=2, name="Grace", email="grace@example.com")
    linus = User(id=3, name="Linus", email="linus@example.com")
    urgent = Tag(id=1, name="urgent")
    later = Tag(id=2, name="later")
    DB.session.add_all([ada, grace, linus, urgent, later])
    DB.session.add_all(
        [
            Task(id=1, name="Write docs", user_id=1, Tags=[urgent]),
            Task(id=2, name="Review", user_id=1),
            Task(id=3, name="Release", user_id=2),
            Task(id=4, name="Unassigned"),
        ]
    )
    DB.session.commit()
