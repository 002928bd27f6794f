"""
Book checkout and return.

A book may have at most one open rental (returned_date IS NULL). The open
rental lookup gives the friendly error; the partial unique index on
rental_log is what actually holds the line when two checkouts race.
"""

import logging
from datetime import timedelta, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from .errors import ConflictError, ForbiddenError, NotFoundError
from .models import Book, RentalLog, User, utcnow

logger = logging.getLogger(__name__)

ALREADY_ON_LOAN = "Book is already on loan"


def _iso(value):
    # columns hold naive UTC
    return value.replace(tzinfo=timezone.utc).isoformat() if value else None


def rental_view(rental):
    return {
        "id": rental.id,
        "bookIsbn": str(rental.book_isbn),
        "checkoutDate": _iso(rental.checkout_date),
        "dueDate": _iso(rental.due_date),
    }


def history_entry(rental):
    return {
        "id": rental.id,
        "book": {"isbn": str(rental.book.isbn), "title": rental.book.title},
        "checkoutDate": _iso(rental.checkout_date),
        "dueDate": _iso(rental.due_date),
        "returnedDate": _iso(rental.returned_date),
    }


class RentalService:
    def __init__(self, session_factory, rental_period=timedelta(days=7)):
        self.session_factory = session_factory
        self.rental_period = rental_period

    def _find_active_rental(self, session, isbn):
        q = select(RentalLog).where(
            (RentalLog.book_isbn == isbn) & (RentalLog.returned_date.is_(None))
        )
        return session.execute(q).scalars().first()

    def checkout(self, user_id, isbn):
        session = self.session_factory()
        try:
            book = session.execute(
                select(Book).where(Book.isbn == isbn).with_for_update()
            ).scalar_one_or_none()
            if not book or book.is_deleted:
                raise NotFoundError("Book not found")

            user = session.get(User, user_id)
            if not user or user.is_deleted:
                raise NotFoundError("User not found")

            if self._find_active_rental(session, isbn):
                logger.warning("Checkout of %s by user %s refused: on loan", isbn, user_id)
                raise ConflictError(ALREADY_ON_LOAN)

            checkout_date = utcnow()
            rental = RentalLog(
                book_isbn=isbn,
                user_id=user_id,
                checkout_date=checkout_date,
                due_date=checkout_date + self.rental_period,
            )
            session.add(rental)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                logger.warning("Checkout of %s by user %s lost the race", isbn, user_id)
                raise ConflictError(ALREADY_ON_LOAN)

            logger.info("User %s checked out %s (rental %s)", user_id, isbn, rental.id)
            return rental_view(rental)
        finally:
            session.close()

    def return_book(self, rental_id, user_id):
        session = self.session_factory()
        try:
            rental = session.execute(
                select(RentalLog).where(RentalLog.id == rental_id).with_for_update()
            ).scalar_one_or_none()
            if not rental:
                raise NotFoundError("Rental not found")

            if rental.user_id != user_id:
                raise ForbiddenError("This rental belongs to another user")

            if rental.returned_date is not None:
                raise ConflictError("Book has already been returned")

            rental.returned_date = utcnow()
            session.commit()
            logger.info("User %s returned rental %s", user_id, rental_id)

            return {"id": rental.id, "returnedDate": _iso(rental.returned_date)}
        finally:
            session.close()

    def rental_history(self, user_id):
        session = self.session_factory()
        try:
            q = (
                select(RentalLog)
                .options(joinedload(RentalLog.book))
                .where(RentalLog.user_id == user_id)
                .order_by(RentalLog.checkout_date.desc(), RentalLog.id.desc())
            )
            rentals = session.execute(q).scalars().all()
            return {"history": [history_entry(r) for r in rentals]}
        finally:
            session.close()
