# seed_demo.py
import os

import requests

BASE_URL = os.getenv("LIBRARY_BASE_URL", "http://localhost:3000")
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@example.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin-password")

AUTHORS = [
    "Robert C. Martin",
    "Andrew Hunt",
    "Brian W. Kernighan",
    "Joshua Bloch",
    "Martin Kleppmann",
]

PUBLISHERS = [
    "Prentice Hall",
    "Addison-Wesley",
    "O'Reilly Media",
]

BOOKS = [
    {
        "isbn": 9780132350884,
        "title": "Clean Code",
        "author": "Robert C. Martin",
        "publisher": "Prentice Hall",
        "year": 2008,
        "month": 8,
    },
    {
        "isbn": 9780201616224,
        "title": "The Pragmatic Programmer",
        "author": "Andrew Hunt",
        "publisher": "Addison-Wesley",
        "year": 1999,
        "month": 10,
    },
    {
        "isbn": 9780131103627,
        "title": "The C Programming Language",
        "author": "Brian W. Kernighan",
        "publisher": "Prentice Hall",
        "year": 1988,
        "month": 3,
    },
    {
        "isbn": 9780134685991,
        "title": "Effective Java",
        "author": "Joshua Bloch",
        "publisher": "Addison-Wesley",
        "year": 2018,
        "month": 1,
    },
    {
        "isbn": 9780134494166,
        "title": "Clean Architecture",
        "author": "Robert C. Martin",
        "publisher": "Prentice Hall",
        "year": 2017,
        "month": 9,
    },
    {
        "isbn": 9781449373320,
        "title": "Designing Data-Intensive Applications",
        "author": "Martin Kleppmann",
        "publisher": "O'Reilly Media",
        "year": 2017,
        "month": 3,
    },
]


def check_service(http, base_url):
    """Hit /health and return True/False."""
    health_url = f"{base_url.rstrip('/')}/health"
    try:
        r = http.get(health_url, timeout=3)
        print(f"[CHECK] {health_url} -> {r.status_code}")
        return r.ok
    except requests.RequestException as e:
        print(f"[ERROR] service not reachable at {health_url}: {e}")
        return False


def login(http, base_url, email, password):
    """Log in and attach the bearer token to the session. Returns True/False."""
    resp = http.post(
        f"{base_url}/user/login",
        json={"email": email, "password": password},
        timeout=5,
    )
    if not resp.ok:
        print(f"[ERROR] login as {email} failed: {resp.status_code} {resp.text.strip()}")
        return False
    if not resp.json()["user"]["isAdmin"]:
        print(f"[ERROR] {email} is not an administrator (run `flask create-admin`)")
        return False
    http.headers["Authorization"] = f"Bearer {resp.json()['accessToken']}"
    return True


def ensure_named(http, base_url, kind, names):
    """
    Create each author/publisher unless a live one with that exact name
    exists. Returns {name: id}.
    """
    print(f"\n== Seeding {kind}s ==")
    ids = {}
    for name in names:
        resp = http.get(f"{base_url}/search/{kind}", params={"keyword": name}, timeout=5)
        matches = resp.json().get(f"{kind}s", []) if resp.ok else []
        exact = [m for m in matches if m["name"] == name]
        if exact:
            ids[name] = exact[0]["id"]
            print(f"  {name}: exists (id {ids[name]})")
            continue

        resp = http.post(f"{base_url}/admin/{kind}", json={"name": name}, timeout=5)
        print(f"  {name}: {resp.status_code}")
        if resp.ok:
            ids[name] = resp.json()["id"]
    return ids


def seed_books(http, base_url, author_ids, publisher_ids):
    print("\n== Seeding books ==")
    created = 0
    for i, book in enumerate(BOOKS, start=1):
        if book["author"] not in author_ids or book["publisher"] not in publisher_ids:
            print(f"  [{i:02}] {book['title']} -> skipped, missing author/publisher")
            continue

        payload = {
            "isbn": book["isbn"],
            "title": book["title"],
            "authorId": author_ids[book["author"]],
            "publisherId": publisher_ids[book["publisher"]],
            "publicationYear": book["year"],
            "publicationMonth": book["month"],
        }
        try:
            resp = http.post(f"{base_url}/admin/book", json=payload, timeout=5)
        except requests.RequestException as e:
            print(f"  [{i:02}] {book['title']} -> FAILED: {e}")
            continue

        if resp.status_code == 409:
            print(f"  [{i:02}] {book['title']} -> already present")
        else:
            print(f"  [{i:02}] {book['title']} -> {resp.status_code}")
            if resp.ok:
                created += 1
            else:
                print(f"      Body: {resp.text.strip()}")
    return created


def main(http=None, base_url=BASE_URL):
    http = http or requests.Session()
    base_url = base_url.rstrip("/")

    # 0) Make sure the service is up
    print("Checking library service...")
    if not check_service(http, base_url):
        print("\nLibrary service is not reachable. Make sure it is running.")
        return 1

    # 1) Authenticate as admin
    if not login(http, base_url, ADMIN_EMAIL, ADMIN_PASSWORD):
        return 1

    # 2) Authors and publishers, then books that reference them
    author_ids = ensure_named(http, base_url, "author", AUTHORS)
    publisher_ids = ensure_named(http, base_url, "publisher", PUBLISHERS)
    created = seed_books(http, base_url, author_ids, publisher_ids)

    print(f"\nDone, {created} new book(s).")
    print("Try hitting:")
    print(f"  {base_url}/book/list?page=1")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
