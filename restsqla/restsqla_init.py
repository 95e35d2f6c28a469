import logging
import os
import sys
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
import flask.app
from typing import Optional


class RestSQLA:
    """This class configures the Flask application for restsqla services
    :param app: a Flask application.
    :param db: the Flask-SQLAlchemy extension, defaults to the one registered on the app
    :param LOGLEVEL: loglevel configuration variable, values from logging module (0: trace, .. 50: critical)
    """

    # Configuration settings are stored as class variables
    DEFAULT_PAGE_SIZE = 30
    MAX_PAGE_SIZE = 1000
    DEFAULT_ORDER = "DESC"
    LOGLEVEL = logging.WARNING

    def __init__(self, app: Optional[flask.app.Flask] = None, *args, **kwargs) -> None:
        """
        Constructor
        """
        self.app = app
        self.db = None
        if app is not None:
            self.init_app(app, *args, **kwargs)

    def init_app(self, app: flask.app.Flask, db: Optional[SQLAlchemy] = None, **kwargs) -> None:
        """
        Application initialization
        :param app: Flask app
        :param db: Flask-SQLAlchemy extension
        :param kwargs: configuration overrides, stored as class variables
        """
        if not isinstance(app, Flask):  # pragma: no cover
            raise TypeError("'app' should be Flask.")

        if db is None:
            db = app.extensions["sqlalchemy"]

        self.app = app
        self.db = db
        app.extensions["restsqla"] = self

        if app.config.get("DEBUG", False):
            log.setLevel(logging.DEBUG)

        for conf_name, conf_val in kwargs.items():
            setattr(RestSQLA, conf_name, conf_val)

        # pylint: disable=unused-argument,unused-variable
        @app.teardown_appcontext
        def shutdown_session(exception=None):
            """cfr. https://flask.palletsprojects.com/en/latest/patterns/sqlalchemy/"""
            db.session.remove()

    @staticmethod
    def init_logging(loglevel: int = logging.WARNING) -> logging.Logger:
        """
        Specify the log format used in the webserver logs
        The webserver will catch stderr so we redirect eveything to sys.stderr
        """
        log = logging.getLogger(__name__)
        if log.level == logging.NOTSET:
            handler = logging.StreamHandler(sys.stderr)
            formatter = logging.Formatter("[%(asctime)s] %(levelname)s: %(message)s")
            handler.setFormatter(formatter)
            log.setLevel(loglevel)
            log.addHandler(handler)
        return log


#
# DB and logging initialization
#
DB = SQLAlchemy()

try:
    DEBUG = os.getenv("DEBUG", logging.WARNING)
    LOGLEVEL = int(DEBUG)
except ValueError:  # pragma: no cover
    print(f'Invalid LogLevel in DEBUG Environment Variable! "{DEBUG}"')
    LOGLEVEL = logging.INFO

log = RestSQLA.init_logging(LOGLEVEL)
