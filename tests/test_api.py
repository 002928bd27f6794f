from datetime import datetime, timedelta

import pytest

ISBN = 9780000000001


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "ok"


# ----------------- users -----------------

def test_register_and_login(client):
    resp = client.post(
        "/user/register",
        json={"email": "Reader@Example.com", "name": "Reader", "password": "secret-pw"},
    )
    assert resp.status_code == 201
    user = resp.get_json()
    assert user["email"] == "reader@example.com"
    assert user["isAdmin"] is False

    resp = client.post(
        "/user/login", json={"email": "reader@example.com", "password": "secret-pw"}
    )
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["user"] == user
    assert body["accessToken"] and body["refreshToken"]


def test_register_errors_are_400(client):
    payload = {"email": "reader@example.com", "name": "Reader", "password": "secret-pw"}
    assert client.post("/user/register", json=payload).status_code == 201

    resp = client.post("/user/register", json=payload)
    assert resp.status_code == 400
    assert "message" in resp.get_json()

    resp = client.post("/user/register", json={**payload, "email": "x@y.z", "password": "123"})
    assert resp.status_code == 400


def test_login_failures_are_uniform(client, make_user):
    make_user()
    wrong = client.post("/user/login", json={"email": "reader@example.com", "password": "nope-nope"})
    missing = client.post("/user/login", json={"email": "ghost@example.com", "password": "secret-pw"})
    assert wrong.status_code == missing.status_code == 401
    assert wrong.get_json() == missing.get_json()


def test_refresh(client, make_user):
    make_user()
    tokens = client.post(
        "/user/login", json={"email": "reader@example.com", "password": "secret-pw"}
    ).get_json()

    resp = client.post("/user/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert resp.status_code == 200
    assert list(resp.get_json()) == ["accessToken"]

    assert client.post("/user/refresh", json={"refreshToken": "junk"}).status_code == 401
    assert client.post("/user/refresh", json={}).status_code == 400


def test_bearer_token_required(client):
    assert client.get("/user/rental-history").status_code == 401
    resp = client.get("/user/rental-history", headers={"Authorization": "Bearer junk"})
    assert resp.status_code == 403
    assert resp.get_json() == {"message": "Invalid or expired token"}


def test_update_profile(client, login_headers):
    headers = login_headers()
    resp = client.put("/user/profile", json={"name": "Renamed"}, headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()["name"] == "Renamed"

    assert client.put("/user/change", json={"name": " "}, headers=headers).status_code == 400


# ----------------- books -----------------

def test_list_books_paging(client, admin_service, author, publisher):
    for i in range(7):
        admin_service.create_book(9780000000100 + i, f"B{i}", author["id"], publisher["id"], 2000 + i, 1)

    body = client.get("/book/list?page=2&pageSize=3").get_json()
    assert body["current"] == 2
    assert body["last_page"] == 3
    assert [b["title"] for b in body["books"]] == ["B3", "B2", "B1"]

    default = client.get("/book/list").get_json()
    assert default["current"] == 1
    assert len(default["books"]) == 5


@pytest.mark.parametrize("query", ["page=0", "page=-1", "page=abc", "pageSize=0", "pageSize=1000"])
def test_list_books_bad_paging(client, query):
    resp = client.get(f"/book/list?{query}")
    assert resp.status_code == 400
    assert "message" in resp.get_json()


def test_book_detail_errors(client):
    assert client.get("/book/detail/9789999999999").status_code == 404
    assert client.get("/book/detail/not-an-isbn").status_code == 400


def test_catalog_checkout_scenario(client, admin_headers, login_headers):
    resp = client.post("/admin/author", json={"name": "A1"}, headers=admin_headers)
    assert resp.status_code == 201
    author_id = resp.get_json()["id"]
    resp = client.post("/admin/publisher", json={"name": "P1"}, headers=admin_headers)
    publisher_id = resp.get_json()["id"]

    resp = client.post(
        "/admin/book",
        json={
            "isbn": ISBN,
            "title": "Scenario",
            "authorId": author_id,
            "publisherId": publisher_id,
            "publicationYear": 2024,
            "publicationMonth": 4,
        },
        headers=admin_headers,
    )
    assert resp.status_code == 201

    detail = client.get(f"/book/detail/{ISBN}").get_json()
    assert detail["isbn"] == "9780000000001"
    assert detail["title"] == "Scenario"
    assert detail["author"] == {"name": "A1"}
    assert detail["publisher"] == {"name": "P1"}

    u1 = login_headers("u1@example.com")
    u2 = login_headers("u2@example.com")

    resp = client.post("/book/rental", json={"bookIsbn": ISBN}, headers=u1)
    assert resp.status_code == 200
    rental = resp.get_json()
    due = datetime.fromisoformat(rental["dueDate"])
    assert due - datetime.fromisoformat(rental["checkoutDate"]) == timedelta(days=7)

    resp = client.post("/book/rental", json={"bookIsbn": str(ISBN)}, headers=u2)
    assert resp.status_code == 409

    # someone else's rental
    resp = client.post("/book/return", json={"rentalId": rental["id"]}, headers=u2)
    assert resp.status_code == 403

    resp = client.put("/book/return", json={"rentalId": rental["id"]}, headers=u1)
    assert resp.status_code == 200
    assert resp.get_json()["returnedDate"]

    resp = client.post("/book/return", json={"rentalId": rental["id"]}, headers=u1)
    assert resp.status_code == 400

    history = client.get("/user/history", headers=u1).get_json()["history"]
    assert history[0]["book"] == {"isbn": "9780000000001", "title": "Scenario"}

    assert client.post("/book/rental", json={"bookIsbn": ISBN}, headers=u2).status_code == 200


def test_rental_request_errors(client, login_headers):
    headers = login_headers()
    assert client.post("/book/rental", json={}, headers=headers).status_code == 400
    assert client.post("/book/rental", json={"bookIsbn": ISBN}, headers=headers).status_code == 404
    assert client.post("/book/return", json={}, headers=headers).status_code == 400
    assert client.post("/book/return", json={"rentalId": 42}, headers=headers).status_code == 404


# ----------------- admin & search -----------------

def test_admin_routes_need_admin(client, login_headers):
    resp = client.post("/admin/author", json={"name": "X"}, headers=login_headers())
    assert resp.status_code == 403
    assert resp.get_json() == {"message": "Admin privilege required"}
    assert client.post("/admin/author", json={"name": "X"}).status_code == 401


def test_admin_author_lifecycle(client, admin_headers):
    author_id = client.post("/admin/author", json={"name": "Iain Banks"}, headers=admin_headers).get_json()["id"]

    resp = client.put(f"/admin/author/{author_id}", json={"name": "Iain M. Banks"}, headers=admin_headers)
    assert resp.get_json() == {"id": author_id, "name": "Iain M. Banks"}

    resp = client.get("/search/author?keyword=Banks")
    assert resp.get_json() == {"authors": [{"id": author_id, "name": "Iain M. Banks"}]}

    assert client.delete(f"/admin/author/{author_id}", headers=admin_headers).status_code == 200
    assert client.get("/search/author?keyword=Banks").get_json() == {"authors": []}
    assert client.put("/admin/author/999", json={"name": "N"}, headers=admin_headers).status_code == 404
    assert client.post("/admin/author", json={"name": ""}, headers=admin_headers).status_code == 400


def test_admin_book_routes(client, admin_headers, author, publisher, book):
    fields = {
        "title": "Updated",
        "authorId": author["id"],
        "publisherId": publisher["id"],
        "publicationYear": 2021,
        "publicationMonth": 2,
    }
    resp = client.post("/admin/book", json={"isbn": ISBN, **fields}, headers=admin_headers)
    assert resp.status_code == 409

    resp = client.post("/admin/book", json={"isbn": 9780000000002, "title": "T"}, headers=admin_headers)
    assert resp.status_code == 400

    resp = client.post(
        "/admin/book", json={"isbn": 9780000000002, **fields, "authorId": 999}, headers=admin_headers
    )
    assert resp.status_code == 404

    resp = client.put(f"/admin/book/{ISBN}", json=fields, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.get_json()["title"] == "Updated"

    assert client.delete(f"/admin/book/{ISBN}", headers=admin_headers).status_code == 200
    assert client.get(f"/book/detail/{ISBN}").status_code == 404


def test_search_requires_keyword(client):
    assert client.get("/search/publisher").status_code == 400
    assert client.get("/search/publisher?keyword=P").get_json() == {"publishers": []}


def test_unknown_route_is_json(client):
    resp = client.get("/nope")
    assert resp.status_code == 404
    assert "message" in resp.get_json()


def test_create_admin_command(app, auth_service):
    runner = app.test_cli_runner()
    result = runner.invoke(
        args=["create-admin", "--email", "Root@Example.com", "--password", "root-password"]
    )
    assert result.exit_code == 0, result.output
    assert "root@example.com" in result.output

    tokens = auth_service.login_user("root@example.com", "root-password")
    assert tokens["user"]["isAdmin"] is True


# ----------------- out-of-range and non-ASCII numeric input -----------------

HUGE = "99999999999999999999"


@pytest.mark.parametrize(
    "query",
    [f"page={HUGE}", f"pageSize={HUGE}", "page=%C2%B2", "page=%D9%A1"],
)
def test_list_books_rejects_unusable_numbers(client, query):
    resp = client.get(f"/book/list?{query}")
    assert resp.status_code == 400
    assert "message" in resp.get_json()


@pytest.mark.parametrize("isbn", ["%C2%B2", "%D9%A1%D9%A2", "9" * 5000, "9" * 40])
def test_book_detail_rejects_unusable_isbns(client, isbn):
    resp = client.get(f"/book/detail/{isbn}")
    assert resp.status_code == 400
    assert "message" in resp.get_json()


@pytest.mark.parametrize("body", [{"rentalId": 10 ** 20}, {"rentalId": "²"}, {"rentalId": 1e300}])
def test_return_rejects_unusable_rental_ids(client, login_headers, body):
    resp = client.post("/book/return", json=body, headers=login_headers())
    assert resp.status_code == 400
    assert "message" in resp.get_json()


@pytest.mark.parametrize("body", [{"bookIsbn": "²"}, {"bookIsbn": "9" * 5000}])
def test_rental_rejects_unusable_isbns(client, login_headers, body):
    resp = client.post("/book/rental", json=body, headers=login_headers())
    assert resp.status_code == 400
    assert "message" in resp.get_json()


@pytest.mark.parametrize(
    "method,path",
    [
        ("put", f"/admin/author/{HUGE}"),
        ("delete", f"/admin/author/{HUGE}"),
        ("put", f"/admin/publisher/{HUGE}"),
        ("delete", f"/admin/publisher/{HUGE}"),
        ("put", "/admin/author/%C2%B2"),
        ("put", "/admin/book/%C2%B2"),
        ("delete", f"/admin/book/{'9' * 5000}"),
    ],
)
def test_admin_paths_reject_unusable_ids(client, admin_headers, method, path):
    resp = getattr(client, method)(path, json={"name": "N"}, headers=admin_headers)
    assert resp.status_code == 400
    assert "message" in resp.get_json()


def test_admin_book_rejects_huge_reference_ids(client, admin_headers):
    resp = client.post(
        "/admin/book",
        json={
            "isbn": ISBN,
            "title": "T",
            "authorId": 10 ** 20,
            "publisherId": 1,
            "publicationYear": 2020,
            "publicationMonth": 1,
        },
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert "message" in resp.get_json()
