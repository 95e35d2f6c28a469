#
# Flask exposure of the RestAdapter operations
#
# /<collection>                                   GET (find), POST (create)
# /<collection>/<id>                              GET, PUT, PATCH, DELETE
# /<collection>/<id>/<relationship>               GET, POST, DELETE (sub resources)
# /<collection>/<id>/<relationship>/<sub_id>      GET, DELETE
#
import logging
from functools import wraps
from http import HTTPStatus
import werkzeug.exceptions
from flask import current_app, jsonify, make_response, request
from flask.views import MethodView
import restsqla
from .adapter import RestAdapter
from .errors import RestError
from .json_encoder import RestJSONProvider
from .restsqla_init import RestSQLA
from .util import collection_name
from typing import Any, Callable, Dict


def http_method_decorator(fun: Callable) -> Callable:
    """Decorator for the supported HTTP methods (get, post, put, patch, delete)
    - convert all exceptions to a JSON serializable error response
    - roll back the session when an error occurred

    :param fun:
    :return: wrapped fun
    """

    @wraps(fun)
    def method_wrapper(*args, **kwargs):
        """Wrap the method and perform error handling
        :param *args:
        :param **kwargs:
        :return: result of the wrapped method
        """
        rest_exception = None
        status_code = HTTPStatus.INTERNAL_SERVER_ERROR.value
        message = ""
        try:
            return fun(*args, **kwargs)

        except werkzeug.exceptions.NotFound as exc:
            # this also catches restsqla.errors.NotFoundError
            status_code = HTTPStatus.NOT_FOUND.value
            rest_exception = exc
            message = HTTPStatus.NOT_FOUND.description

        except RestError as exc:
            rest_exception = exc

        except werkzeug.exceptions.HTTPException as exc:
            status_code = exc.code
            message = exc.description
            restsqla.log.error(message)

        except Exception as exc:
            restsqla.log.exception(exc)
            if restsqla.log.getEffectiveLevel() > logging.DEBUG:
                message = "Logging Disabled"
            else:
                message = str(exc)

        status_code = getattr(rest_exception, "status_code", status_code)
        title = getattr(rest_exception, "message", message)
        detail = getattr(rest_exception, "detail", title)

        current_app.extensions["restsqla"].db.session.rollback()
        errors = dict(title=title, detail=detail, code=str(status_code))
        return make_response(jsonify(errors=[errors]), status_code)

    return method_wrapper


def json_response(result: Dict[str, Any]):
    """
    :param result: serialized adapter result {"result", "meta", "status"}
    :return: flask response
    """
    status = result.get("status", HTTPStatus.OK.value)
    if status == HTTPStatus.NO_CONTENT.value:
        return make_response("", status)
    return make_response(jsonify(result=result["result"], meta=result["meta"]), status)


def get_payload() -> Any:
    return request.get_json(silent=True)


def get_query() -> Dict[str, Any]:
    return request.args.to_dict()


class RestResource(MethodView):
    """
    Collection and instance endpoints of a model
    """

    def __init__(self, adapter: RestAdapter, type_: type) -> None:
        self.adapter = adapter
        self.type_ = type_

    @http_method_decorator
    def get(self, id=None):
        if id is None:
            return json_response(self.adapter.find(self.type_, get_query()))
        return json_response(self.adapter.find_by_id(self.type_, id))

    @http_method_decorator
    def post(self):
        return json_response(self.adapter.create(self.type_, get_payload()))

    @http_method_decorator
    def patch(self, id):
        return json_response(self.adapter.update(self.type_, id, get_payload()))

    put = patch

    @http_method_decorator
    def delete(self, id):
        return json_response(self.adapter.delete(self.type_, id))


class RestSubResource(MethodView):
    """
    Sub resource endpoints, i.e. the records related to an instance
    """

    def __init__(self, adapter: RestAdapter, type_: type) -> None:
        self.adapter = adapter
        self.type_ = type_

    @http_method_decorator
    def get(self, id, relationship, sub_id=None):
        if sub_id is not None:
            return json_response(self.adapter.find_sub_resource_by_id(self.type_, id, relationship, sub_id))
        where = get_query()
        query = {"where": where} if where else None
        return json_response(self.adapter.find_sub_resources(self.type_, id, relationship, query))

    @http_method_decorator
    def post(self, id, relationship):
        return json_response(self.adapter.create_sub_resources(self.type_, id, relationship, get_payload()))

    @http_method_decorator
    def delete(self, id, relationship, sub_id=None):
        query = sub_id if sub_id is not None else (get_query() or None)
        return json_response(self.adapter.delete_sub_resources(self.type_, id, relationship, query))


class RestAPI:
    """
    Expose models on a Flask app

    :param app: Flask app
    :param db: Flask-SQLAlchemy extension, defaults to the one registered on the app
    :param prefix: url prefix, e.g. "/api"
    :param services: type name => RestService subclass or instance
    :param handlers: association handler registry used by the default services
    :param kwargs: configuration overrides
    """

    def __init__(self, app, db=None, prefix: str = "", services=None, handlers=None, **kwargs) -> None:
        self.extension = RestSQLA(app, db=db, **kwargs)
        self.app = app
        self.db = self.extension.db
        self.prefix = prefix.rstrip("/")
        self.adapter = RestAdapter(self.db, services=services, handlers=handlers)
        self.models = []
        app.json = RestJSONProvider(app)
        app.url_map.strict_slashes = False

    def expose_object(self, model: type) -> None:
        """
        Register the routes of a model
        :param model: mapped class
        """
        name = collection_name(model)
        url = f"{self.prefix}/{name}"
        resource_view = RestResource.as_view(f"{name}_resource", self.adapter, model)
        sub_resource_view = RestSubResource.as_view(f"{name}_sub_resource", self.adapter, model)

        self.app.add_url_rule(url, view_func=resource_view, methods=["GET", "POST"])
        self.app.add_url_rule(f"{url}/<string:id>", view_func=resource_view, methods=["GET", "PUT", "PATCH", "DELETE"])
        self.app.add_url_rule(f"{url}/<string:id>/<string:relationship>", view_func=sub_resource_view, methods=["GET", "POST", "DELETE"])
        self.app.add_url_rule(
            f"{url}/<string:id>/<string:relationship>/<string:sub_id>", view_func=sub_resource_view, methods=["GET", "DELETE"]
        )
        self.models.append(model)
        restsqla.log.info(f"Exposing {model.__name__} on {url}")

    def expose(self, *models: type) -> None:
        for model in models:
            self.expose_object(model)
