# Overview: Unit-of-work and row-locking helpers shared by every service.

from __future__ import annotations

from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrencyConflictError, NotFoundError
from ..extensions import db
from ..models import Product


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def lock_product(product_id: int) -> Product:
    """
    Load and lock a product row; every write scoped to a product starts here.

    Raises NotFoundError if the product does not exist.
    """
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if not product:
        raise NotFoundError("Product", product_id)
    return product


def run_atomic(func):
    """
    Execute one public operation as a single unit of work.

    Commits when func returns, rolls back on any exception and re-raises it.
    Nothing is retried: each call is exactly one caller-initiated attempt.
    A lost optimistic version check surfaces as ConcurrencyConflictError.
    """
    try:
        result = func()
        db.session.commit()
    except StaleDataError as exc:
        db.session.rollback()
        raise ConcurrencyConflictError(f"Concurrent modification detected: {exc}") from exc
    except Exception:
        db.session.rollback()
        raise
    return result
