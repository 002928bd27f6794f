import math

from sqlalchemy import func, select
from sqlalchemy.orm import joinedload

from .errors import NotFoundError, ValidationError
from .models import Book


def book_summary(book):
    return {
        "isbn": str(book.isbn),
        "title": book.title,
        "author": {"name": book.author.name},
        "publication_year_month": book.publication_year_month,
    }


def book_detail(book):
    return {
        "isbn": str(book.isbn),
        "title": book.title,
        "author": {"name": book.author.name},
        "publisher": {"name": book.publisher.name},
        "publication_year_month": book.publication_year_month,
    }


class CatalogService:
    """Read-only views over the non-deleted part of the catalog."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def list_books(self, page=1, page_size=5):
        if page < 1:
            raise ValidationError("page must be 1 or greater")
        if page_size < 1:
            raise ValidationError("pageSize must be 1 or greater")

        session = self.session_factory()
        try:
            total = session.execute(
                select(func.count()).select_from(Book).where(Book.is_deleted.is_(False))
            ).scalar_one()

            offset = (page - 1) * page_size
            if offset >= total:
                # past the last page; also keeps huge offsets away from the database
                books = []
            else:
                books = self._fetch_page(session, offset, page_size)

            return {
                "current": page,
                "last_page": math.ceil(total / page_size),
                "total": total,
                "books": [book_summary(b) for b in books],
            }
        finally:
            session.close()

    def _fetch_page(self, session, offset, limit):
        q = (
            select(Book)
            .options(joinedload(Book.author))
            .where(Book.is_deleted.is_(False))
            .order_by(
                Book.publication_year.desc(),
                Book.publication_month.desc(),
                Book.isbn,
            )
            .offset(offset)
            .limit(limit)
        )
        return session.execute(q).scalars().all()

    def get_book_detail(self, isbn):
        session = self.session_factory()
        try:
            q = (
                select(Book)
                .options(joinedload(Book.author), joinedload(Book.publisher))
                .where(Book.isbn == isbn)
            )
            book = session.execute(q).scalar_one_or_none()
            if not book or book.is_deleted:
                raise NotFoundError("Book not found")
            return book_detail(book)
        finally:
            session.close()
