#!/usr/bin/env python3
"""
  This demo application exposes users and their books with restsqla
  When restsqla is installed, you can run this app:
  $ python3 demo_relationship.py [Listener-IP]

  This will run the example on http://Listener-Ip:5000

  - An sqlite database is created and populated
  - A rest API is created, try for example:

  $ curl -X POST -H "Content-Type: application/json" http://127.0.0.1:5000/api/users \
        -d '{"name": "reader", "books": [{"name": "new book"}, 1]}'
  $ curl http://127.0.0.1:5000/api/users/1/books
"""
import sys
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from restsqla import AssociationHandlerRegistry, CREATE, RestAPI, create_association

db = SQLAlchemy()


# Example sqla database objects
class User(db.Model):
    __tablename__ = "users"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String, default="")
    email = db.Column(db.String, default="")
    books = db.relationship("Book", back_populates="user")


class Book(db.Model):
    __tablename__ = "books"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String, default="")
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"))
    user = db.relationship("User", back_populates="books")


handlers = AssociationHandlerRegistry()


@handlers.handler(Book, CREATE)
def create_book(target, data, session):
    """Books that are created through an association get a default title"""
    data = dict(data)
    data.setdefault("name", "untitled")
    return create_association(target, data, session)


# Create the api endpoints
def create_api(app, host="localhost", port=5000, api_prefix="/api"):
    api = RestAPI(app, db=db, prefix=api_prefix, handlers=handlers)
    api.expose(User, Book)
    print(f"Created API: http://{host}:{port}{api_prefix}")


def create_app(host="localhost"):
    app = Flask("demo_app")
    app.config.update(SQLALCHEMY_DATABASE_URI="sqlite://")
    db.init_app(app)

    with app.app_context():
        db.create_all()
        create_api(app, host)
        # Populate the db with users and books and add the book to the user.books relationship
        for i in range(20):
            user = User(name=f"user{i}", email=f"email{i}@email.com")
            book = Book(name=f"test book {i}")
            user.books.append(book)
            db.session.add(user)
        db.session.commit()

    return app


# Address where the api will be hosted, change this if you're not running the app on localhost!
host = sys.argv[1] if sys.argv[1:] else "127.0.0.1"
app = create_app(host=host)

if __name__ == "__main__":
    app.run(host=host)
