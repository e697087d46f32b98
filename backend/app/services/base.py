# backend/app/services/base.py
"""
Base Service Pattern for the dance school platform.

Provides common functionality for all service classes including:
- Transaction management
- Logging
- Error translation from the repository layer
- Performance monitoring
"""

from contextlib import contextmanager
from functools import wraps
import logging
import time
from typing import Any, Callable, Dict, Iterator, NoReturn, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import (
    RepositoryException,
    ServiceException,
    ServiceTimeoutException,
    is_db_timeout,
)
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class BaseService:
    """
    Base class for all service layer components.

    Provides common patterns for:
    - Database session management
    - Logging
    - Transaction handling
    - Performance monitoring
    """

    def __init__(self, db: Session):
        self.db = db
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self, **context: Any) -> Iterator[Session]:
        """
        Context manager for database transactions.

        Usage:
            with self.transaction():
                # Do multiple operations
                self.db.add(entity)
                # Note: commit is handled automatically

        Any exception rolls the whole unit back. Store failures surface as
        ServiceTimeoutException or ServiceException; domain exceptions pass
        through unchanged. ``context`` ids are attached to failure logs so a
        failed rollback can be reconciled by hand.
        """
        try:
            yield self.db
            self.db.commit()
            self.logger.debug("Transaction committed successfully")
        except (SQLAlchemyError, RepositoryException) as e:
            self.logger.error(f"Transaction failed: {str(e)}", extra=context)
            self._rollback(context)
            self.raise_store_error(e)
        except Exception:
            self._rollback(context)
            raise

    def _rollback(self, context: Dict[str, Any]) -> None:
        try:
            self.db.rollback()
        except SQLAlchemyError as exc:
            self.logger.error(
                "Rollback failed, manual reconciliation needed: %s", exc, extra=context
            )

    @staticmethod
    def raise_store_error(exc: BaseException) -> NoReturn:
        """Translate a store failure into the matching service exception."""
        if is_db_timeout(exc):
            raise ServiceTimeoutException("database") from exc
        raise ServiceException(f"Database operation failed: {str(exc)}") from exc

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Decorator to measure operation performance.

        Usage:
            @BaseService.measure_operation("book")
            def book(self, ...):
                # Method implementation
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self, *args, **kwargs):
                start_time = time.time()
                success = False
                error_type = None

                try:
                    result = func(self, *args, **kwargs)
                    success = True
                    return result
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.time() - start_time

                    # Only log if it's actually slow
                    if elapsed > 1.0:
                        self.logger.warning(
                            f"Slow operation detected: {operation_name} took {elapsed:.2f}s"
                        )

                    prometheus_metrics.record_service_operation(
                        service=self.__class__.__name__,
                        operation=operation_name,
                        duration=elapsed,
                        status="success" if success else "error",
                        error_type=error_type,
                    )

            return cast(F, wrapper)

        return decorator

    def log_operation(self, operation: str, **context: Any) -> None:
        """Log an operation with structured context."""
        self.logger.info(f"Operation: {operation}", extra={"operation": operation, **context})
