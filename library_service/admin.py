"""
Catalog maintenance for administrators: authors, publishers and books.

Nothing here is ever physically deleted; delete flips ``is_deleted`` and
every read filters on it.
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from .errors import ConflictError, NotFoundError, ValidationError
from .models import Author, Book, Publisher
from .validation import parse_int, require_name

logger = logging.getLogger(__name__)


def _named_view(row):
    return {"id": row.id, "name": row.name}


def _book_view(book):
    return {
        "isbn": str(book.isbn),
        "title": book.title,
        "authorId": book.author_id,
        "publisherId": book.publisher_id,
        "publicationYear": book.publication_year,
        "publicationMonth": book.publication_month,
    }


class AdminService:
    def __init__(self, session_factory):
        self.session_factory = session_factory

    # ----------------- authors & publishers -----------------

    def _create_named(self, model, name, label):
        name = require_name(name, f"{label} name")
        session = self.session_factory()
        try:
            row = model(name=name)
            session.add(row)
            session.commit()
            logger.info("Created %s %s (%s)", label, row.id, name)
            return _named_view(row)
        finally:
            session.close()

    def _update_named(self, model, row_id, name, label):
        name = require_name(name, f"{label} name")
        session = self.session_factory()
        try:
            row = session.get(model, row_id)
            if not row:
                raise NotFoundError(f"{label.capitalize()} not found")
            row.name = name
            session.commit()
            logger.info("Updated %s %s", label, row_id)
            return _named_view(row)
        finally:
            session.close()

    def _delete_named(self, model, row_id, label):
        session = self.session_factory()
        try:
            row = session.get(model, row_id)
            if not row:
                raise NotFoundError(f"{label.capitalize()} not found")
            row.is_deleted = True
            session.commit()
            logger.info("Soft-deleted %s %s", label, row_id)
            return {"message": f"{label.capitalize()} deleted"}
        finally:
            session.close()

    def _search_named(self, model, keyword):
        if not isinstance(keyword, str) or not keyword:
            raise ValidationError("keyword is required")
        session = self.session_factory()
        try:
            q = (
                select(model)
                .where(model.name.contains(keyword, autoescape=True))
                .where(model.is_deleted.is_(False))
                .order_by(model.id)
            )
            return [_named_view(r) for r in session.execute(q).scalars().all()]
        finally:
            session.close()

    def create_author(self, name):
        return self._create_named(Author, name, "author")

    def update_author(self, author_id, name):
        return self._update_named(Author, author_id, name, "author")

    def delete_author(self, author_id):
        return self._delete_named(Author, author_id, "author")

    def search_authors(self, keyword):
        return {"authors": self._search_named(Author, keyword)}

    def create_publisher(self, name):
        return self._create_named(Publisher, name, "publisher")

    def update_publisher(self, publisher_id, name):
        return self._update_named(Publisher, publisher_id, name, "publisher")

    def delete_publisher(self, publisher_id):
        return self._delete_named(Publisher, publisher_id, "publisher")

    def search_publishers(self, keyword):
        return {"publishers": self._search_named(Publisher, keyword)}

    # ----------------- books -----------------

    @staticmethod
    def _check_book_fields(title, publication_year, publication_month):
        title = require_name(title, "title")
        year = parse_int(publication_year, "publicationYear", minimum=1)
        month = parse_int(publication_month, "publicationMonth", minimum=1, maximum=12)
        return title, year, month

    @staticmethod
    def _check_references(session, author_id, publisher_id):
        author = session.get(Author, author_id)
        if not author or author.is_deleted:
            raise NotFoundError("Author not found")
        publisher = session.get(Publisher, publisher_id)
        if not publisher or publisher.is_deleted:
            raise NotFoundError("Publisher not found")

    def create_book(self, isbn, title, author_id, publisher_id, publication_year, publication_month):
        title, year, month = self._check_book_fields(title, publication_year, publication_month)

        session = self.session_factory()
        try:
            if session.get(Book, isbn) is not None:
                raise ConflictError("ISBN already exists")
            self._check_references(session, author_id, publisher_id)

            book = Book(
                isbn=isbn,
                title=title,
                author_id=author_id,
                publisher_id=publisher_id,
                publication_year=year,
                publication_month=month,
            )
            session.add(book)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                raise ConflictError("ISBN already exists")

            logger.info("Created book %s", isbn)
            return _book_view(book)
        finally:
            session.close()

    def update_book(self, isbn, title, author_id, publisher_id, publication_year, publication_month):
        title, year, month = self._check_book_fields(title, publication_year, publication_month)

        session = self.session_factory()
        try:
            book = session.get(Book, isbn)
            if not book or book.is_deleted:
                raise NotFoundError("Book not found")
            self._check_references(session, author_id, publisher_id)

            book.title = title
            book.author_id = author_id
            book.publisher_id = publisher_id
            book.publication_year = year
            book.publication_month = month
            session.commit()

            logger.info("Updated book %s", isbn)
            return _book_view(book)
        finally:
            session.close()

    def delete_book(self, isbn):
        session = self.session_factory()
        try:
            book = session.get(Book, isbn)
            if not book:
                raise NotFoundError("Book not found")
            book.is_deleted = True
            session.commit()
            logger.info("Soft-deleted book %s", isbn)
            return {"message": "Book deleted"}
        finally:
            session.close()
