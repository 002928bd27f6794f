# library_service/models.py
from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Boolean,
    ForeignKey,
    Index,
)
from sqlalchemy.types import TypeDecorator

Base = declarative_base()


def utcnow():
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Isbn(TypeDecorator):
    """
    ISBNs are integers of arbitrary precision. They are stored as their
    decimal string so no backend truncates them, and come back as int.
    """
    impl = String(32)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(int(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return int(value)


class Author(Base):
    __tablename__ = "author"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Publisher(Base):
    __tablename__ = "publisher"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Book(Base):
    __tablename__ = "book"

    isbn = Column(Isbn, primary_key=True)
    title = Column(String(255), nullable=False)
    author_id = Column(Integer, ForeignKey("author.id"), nullable=False)
    publisher_id = Column(Integer, ForeignKey("publisher.id"), nullable=False)
    publication_year = Column(Integer, nullable=False)
    publication_month = Column(Integer, nullable=False)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    author = relationship("Author")
    publisher = relationship("Publisher")

    @property
    def publication_year_month(self):
        return f"{self.publication_year}-{self.publication_month:02d}"


class User(Base):
    __tablename__ = "user"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Always stored case-folded
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)
    is_admin = Column(Boolean, nullable=False, default=False)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class RentalLog(Base):
    """
    One checkout of one book. Created on checkout, stamped with
    returned_date on return, never deleted.
    """
    __tablename__ = "rental_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    book_isbn = Column(Isbn, ForeignKey("book.isbn"), nullable=False)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False)
    checkout_date = Column(DateTime, nullable=False, default=utcnow)
    due_date = Column(DateTime, nullable=False)
    returned_date = Column(DateTime)

    user = relationship("User")
    book = relationship("Book")


# At most one open rental per book. MySQL has no partial indexes; there the
# book row lock taken during checkout is what serializes competing loans.
Index(
    "uq_rental_log_open_book",
    RentalLog.book_isbn,
    unique=True,
    sqlite_where=RentalLog.returned_date.is_(None),
    postgresql_where=RentalLog.returned_date.is_(None),
)
