import os
import logging
from datetime import timedelta
from functools import wraps

import click
from flask import Blueprint, Flask, abort, current_app, g, jsonify, request
from flask.cli import with_appcontext
from flask_bcrypt import Bcrypt
from flask_cors import CORS
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .admin import AdminService
from .auth import AuthService
from .catalog import CatalogService
from .config import Config
from .db import init_db
from .errors import ConflictError, LibraryError
from .rentals import RentalService
from .validation import parse_int, parse_isbn

logger = logging.getLogger(__name__)

bcrypt = Bcrypt()

api = Blueprint("api", __name__)


# ---------------------------------------------------------
# Helpers
# ---------------------------------------------------------

def _service(name):
    return current_app.extensions["library"][name]


def _json_body():
    data = request.get_json(force=True, silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        abort(400, description="Request body must be a JSON object")
    return data


def _error(message, status):
    return jsonify({"message": message}), status


def _path_id(value):
    return parse_int(value, "id", minimum=1)


def require_token(func):
    """Resolve the bearer access token into ``g.auth`` or reject the request."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        header = request.headers.get("Authorization")
        if not header:
            abort(401, description="Authorization header missing")

        token = header[7:] if header.startswith("Bearer ") else header
        payload = _service("auth").verify_access_token(token.strip())
        if payload is None:
            logger.warning("Invalid or expired token on %s", request.path)
            abort(403, description="Invalid or expired token")

        g.auth = payload
        return func(*args, **kwargs)

    return wrapper


def require_admin(func):
    @wraps(func)
    @require_token
    def wrapper(*args, **kwargs):
        if not g.auth.is_admin:
            logger.warning("User %s denied admin access on %s", g.auth.user_id, request.path)
            abort(403, description="Admin privilege required")
        return func(*args, **kwargs)

    return wrapper


# ---------------------------------------------------------
# Health
# ---------------------------------------------------------

@api.get("/health")
def health_check():
    return jsonify({"status": "ok", "service": "library_service"}), 200


# ---------------------------------------------------------
# User endpoints
# ---------------------------------------------------------

@api.post("/user/register")
def register_user():
    data = _json_body()
    try:
        user = _service("auth").register_user(
            data.get("email"), data.get("name"), data.get("password")
        )
    except ConflictError as exc:
        return _error(exc.message, 400)
    return jsonify(user), 201


@api.post("/user/login")
def login_user():
    data = _json_body()
    result = _service("auth").login_user(data.get("email"), data.get("password"))
    return jsonify(result), 200


@api.post("/user/refresh")
def refresh_token():
    data = _json_body()
    token = data.get("refreshToken")
    if not token:
        abort(400, description="refreshToken is required")
    return jsonify(_service("auth").refresh_access_token(token)), 200


@api.get("/user/rental-history")
@api.get("/user/history")
@require_token
def rental_history():
    return jsonify(_service("rentals").rental_history(g.auth.user_id)), 200


@api.put("/user/profile")
@api.put("/user/change")
@require_token
def update_profile():
    data = _json_body()
    user = _service("auth").update_profile(g.auth.user_id, data.get("name"))
    return jsonify(user), 200


# ---------------------------------------------------------
# Book endpoints
# ---------------------------------------------------------

@api.get("/book/list")
def list_books():
    """
    Paginated catalog.
    - ?page=...      1-based page number (default 1)
    - ?pageSize=...  books per page (default BOOK_LIST_PAGE_SIZE)
    """
    page = parse_int(request.args.get("page", 1), "page", minimum=1)
    page_size = parse_int(
        request.args.get("pageSize", current_app.config["BOOK_LIST_PAGE_SIZE"]),
        "pageSize",
        minimum=1,
        maximum=current_app.config["BOOK_LIST_MAX_PAGE_SIZE"],
    )
    return jsonify(_service("catalog").list_books(page, page_size)), 200


@api.get("/book/detail/<isbn>")
def book_detail(isbn):
    return jsonify(_service("catalog").get_book_detail(parse_isbn(isbn))), 200


@api.post("/book/rental")
@require_token
def rent_book():
    data = _json_body()
    if data.get("bookIsbn") is None:
        abort(400, description="bookIsbn is required")
    rental = _service("rentals").checkout(g.auth.user_id, parse_isbn(data["bookIsbn"]))
    return jsonify(rental), 200


@api.route("/book/return", methods=["POST", "PUT"])
@require_token
def return_book():
    data = _json_body()
    if data.get("rentalId") is None:
        abort(400, description="rentalId is required")
    rental_id = parse_int(data["rentalId"], "rentalId", minimum=1)
    try:
        result = _service("rentals").return_book(rental_id, g.auth.user_id)
    except ConflictError as exc:
        return _error(exc.message, 400)
    return jsonify(result), 200


# ---------------------------------------------------------
# Admin endpoints
# ---------------------------------------------------------

@api.post("/admin/author")
@require_admin
def create_author():
    return jsonify(_service("admin").create_author(_json_body().get("name"))), 201


@api.put("/admin/author/<author_id>")
@require_admin
def update_author(author_id):
    author = _service("admin").update_author(_path_id(author_id), _json_body().get("name"))
    return jsonify(author), 200


@api.delete("/admin/author/<author_id>")
@require_admin
def delete_author(author_id):
    return jsonify(_service("admin").delete_author(_path_id(author_id))), 200


@api.post("/admin/publisher")
@require_admin
def create_publisher():
    return jsonify(_service("admin").create_publisher(_json_body().get("name"))), 201


@api.put("/admin/publisher/<publisher_id>")
@require_admin
def update_publisher(publisher_id):
    publisher = _service("admin").update_publisher(_path_id(publisher_id), _json_body().get("name"))
    return jsonify(publisher), 200


@api.delete("/admin/publisher/<publisher_id>")
@require_admin
def delete_publisher(publisher_id):
    return jsonify(_service("admin").delete_publisher(_path_id(publisher_id))), 200


def _book_fields(data):
    required = ("title", "authorId", "publisherId", "publicationYear", "publicationMonth")
    missing = [f for f in required if data.get(f) in (None, "")]
    if missing:
        abort(400, description=f"Missing book fields: {', '.join(missing)}")
    return {
        "title": data["title"],
        "author_id": parse_int(data["authorId"], "authorId", minimum=1),
        "publisher_id": parse_int(data["publisherId"], "publisherId", minimum=1),
        "publication_year": data["publicationYear"],
        "publication_month": data["publicationMonth"],
    }


@api.post("/admin/book")
@require_admin
def create_book():
    """
    Request JSON:
      {
        "isbn": 9780132350884,      # integer or digit string
        "title": "Clean Code",
        "authorId": 1,
        "publisherId": 1,
        "publicationYear": 2008,
        "publicationMonth": 8
      }
    """
    data = _json_body()
    if data.get("isbn") is None:
        abort(400, description="isbn is required")
    isbn = parse_isbn(data["isbn"])
    book = _service("admin").create_book(isbn, **_book_fields(data))
    return jsonify(book), 201


@api.put("/admin/book/<isbn>")
@require_admin
def update_book(isbn):
    book = _service("admin").update_book(parse_isbn(isbn), **_book_fields(_json_body()))
    return jsonify(book), 200


@api.delete("/admin/book/<isbn>")
@require_admin
def delete_book(isbn):
    return jsonify(_service("admin").delete_book(parse_isbn(isbn))), 200


# ---------------------------------------------------------
# Search
# ---------------------------------------------------------

@api.get("/search/author")
def search_author():
    keyword = request.args.get("keyword")
    if not keyword:
        abort(400, description="keyword is required")
    return jsonify(_service("admin").search_authors(keyword)), 200


@api.get("/search/publisher")
def search_publisher():
    keyword = request.args.get("keyword")
    if not keyword:
        abort(400, description="keyword is required")
    return jsonify(_service("admin").search_publishers(keyword)), 200


# ---------------------------------------------------------
# Error handlers
# ---------------------------------------------------------

def handle_library_error(exc):
    return _error(exc.message, exc.status_code)


def handle_http_error(exc):
    return _error(exc.description, exc.code)


def handle_database_error(exc):
    logger.exception("Database error on %s %s", request.method, request.path)
    return _error("Internal server error", 500)


# ---------------------------------------------------------
# CLI
# ---------------------------------------------------------

@click.command("create-admin")
@click.option("--email", required=True)
@click.option("--name", default="Administrator", show_default=True)
@click.password_option()
@with_appcontext
def create_admin_command(email, name, password):
    """Create an administrator account, or promote an existing one."""
    user = current_app.extensions["library"]["auth"].create_admin(email, name, password)
    click.echo(f"Admin ready: {user['email']} (id {user['id']})")


# ---------------------------------------------------------
# App factory
# ---------------------------------------------------------

def create_app(config_object=Config, **overrides):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.config.update(overrides)

    logging.basicConfig(level=app.config["LOG_LEVEL"])

    CORS(app, origins=app.config["CORS_ORIGINS"])
    bcrypt.init_app(app)

    engine, SessionLocal = init_db(
        app.config["SQLALCHEMY_DATABASE_URI"], echo=app.config["SQLALCHEMY_ECHO"]
    )

    app.extensions["library"] = {
        "engine": engine,
        "auth": AuthService(
            SessionLocal,
            bcrypt,
            secret=app.config["JWT_SECRET"],
            refresh_secret=app.config["JWT_REFRESH_SECRET"],
            algorithm=app.config["JWT_ALGORITHM"],
            access_ttl=timedelta(minutes=app.config["JWT_ACCESS_EXP_MINUTES"]),
            refresh_ttl=timedelta(days=app.config["JWT_REFRESH_EXP_DAYS"]),
        ),
        "catalog": CatalogService(SessionLocal),
        "rentals": RentalService(
            SessionLocal, rental_period=timedelta(days=app.config["RENTAL_PERIOD_DAYS"])
        ),
        "admin": AdminService(SessionLocal),
    }

    app.register_blueprint(api)
    app.register_error_handler(LibraryError, handle_library_error)
    app.register_error_handler(HTTPException, handle_http_error)
    app.register_error_handler(SQLAlchemyError, handle_database_error)
    app.cli.add_command(create_admin_command)

    return app


if __name__ == "__main__":
    port = int(os.getenv("PORT", "3000"))
    create_app().run(host="0.0.0.0", port=port, debug=True)
