import pytest

from library_service.app import create_app
from library_service.config import TestConfig


@pytest.fixture
def app(tmp_path):
    # Each test gets its own database file
    db_file = tmp_path / "library_test.db"
    app = create_app(TestConfig, SQLALCHEMY_DATABASE_URI=f"sqlite:///{db_file}")
    yield app
    app.extensions["library"]["engine"].dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_service(app):
    return app.extensions["library"]["auth"]


@pytest.fixture
def catalog_service(app):
    return app.extensions["library"]["catalog"]


@pytest.fixture
def rental_service(app):
    return app.extensions["library"]["rentals"]


@pytest.fixture
def admin_service(app):
    return app.extensions["library"]["admin"]


@pytest.fixture
def author(admin_service):
    return admin_service.create_author("A1")


@pytest.fixture
def publisher(admin_service):
    return admin_service.create_publisher("P1")


@pytest.fixture
def book(admin_service, author, publisher):
    return admin_service.create_book(
        9780000000001, "First Book", author["id"], publisher["id"], 2020, 5
    )


@pytest.fixture
def make_user(auth_service):
    def _make(email="reader@example.com", name="Reader", password="secret-pw"):
        return auth_service.register_user(email, name, password)

    return _make


@pytest.fixture
def admin_headers(auth_service):
    auth_service.create_admin("admin@example.com", "Admin", "admin-password")
    tokens = auth_service.login_user("admin@example.com", "admin-password")
    return {"Authorization": f"Bearer {tokens['accessToken']}"}


@pytest.fixture
def login_headers(auth_service, make_user):
    def _login(email="reader@example.com", password="secret-pw"):
        make_user(email=email, password=password)
        tokens = auth_service.login_user(email, password)
        return {"Authorization": f"Bearer {tokens['accessToken']}"}

    return _login
