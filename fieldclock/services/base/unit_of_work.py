"""
Unit of Work pattern implementation.

Provides transaction management and repository coordination
for the service layer with SQLAlchemy.
"""
from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Any, Callable, Optional, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fieldclock.config.logging import get_logger
from fieldclock.core.exceptions import DatabaseError
from fieldclock.repositories.base_repository import BaseRepository

logger = get_logger(__name__)

TRepository = TypeVar("TRepository", bound=BaseRepository)


class UnitOfWork(AbstractContextManager["UnitOfWork"]):
    """
    Unit of Work for one logical engine operation.

    Commits on successful exit and rolls back on any exception, so a
    rejected transition leaves no partial writes behind.

    Usage:
        >>> with UnitOfWork(session_factory) as uow:
        ...     sessions = uow.get_repo(SessionEntryRepository)
        ...     entry = sessions.get_open_session(user_id)
        ...     # Auto-commits on __exit__ if no exception
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        auto_commit: bool = True,
    ) -> None:
        self._session_factory = session_factory
        self._auto_commit = auto_commit

        self.session: Optional[Session] = None
        self._committed: bool = False
        self._rolled_back: bool = False
        self._repo_cache: dict[Type[BaseRepository], BaseRepository] = {}

    # ------------------------------------------------------------------ #
    # Context manager protocol
    # ------------------------------------------------------------------ #

    def __enter__(self) -> "UnitOfWork":
        """Enter the context and initialize session."""
        if self.session is not None:
            raise RuntimeError("UnitOfWork context already entered")

        self.session = self._session_factory()
        self.session.autoflush = True
        self._committed = False
        self._rolled_back = False
        self._repo_cache.clear()

        logger.debug("UnitOfWork session started")
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> bool:
        """Exit the context and handle transaction completion."""
        if self.session is None:
            return False

        try:
            if exc_type is None:
                if self._auto_commit and not self._committed and not self._rolled_back:
                    try:
                        self.session.commit()
                        self._committed = True
                        logger.debug("UnitOfWork auto-committed")
                    except SQLAlchemyError as exc:
                        logger.error(f"Auto-commit failed: {exc}")
                        self.session.rollback()
                        raise DatabaseError("Failed to commit transaction", {"error": str(exc)}) from exc
            else:
                if not self._rolled_back:
                    self.session.rollback()
                    self._rolled_back = True
                    logger.debug(f"UnitOfWork rolled back due to {exc_type.__name__}")
        finally:
            self.session.close()
            self.session = None
            self._repo_cache.clear()

        # Propagate any exception
        return False

    # ------------------------------------------------------------------ #
    # Transaction control
    # ------------------------------------------------------------------ #

    def commit(self) -> None:
        """
        Explicitly commit the current transaction.

        Raises:
            RuntimeError: If called outside of context
            DatabaseError: If commit fails
        """
        if self.session is None:
            raise RuntimeError("UnitOfWork.commit() called outside of context")

        if self._committed:
            logger.warning("commit() called on already-committed transaction")
            return

        if self._rolled_back:
            raise RuntimeError("Cannot commit a rolled-back transaction")

        try:
            self.session.commit()
            self._committed = True
        except SQLAlchemyError as exc:
            logger.error(f"Commit failed: {exc}")
            self.session.rollback()
            self._rolled_back = True
            raise DatabaseError("Failed to commit transaction", {"error": str(exc)}) from exc

    # ------------------------------------------------------------------ #
    # Repository factory
    # ------------------------------------------------------------------ #

    def get_repo(self, repo_cls: Type[TRepository]) -> TRepository:
        """
        Get or create a repository instance bound to this UnitOfWork's session.

        Repositories are cached per UnitOfWork instance for consistency.
        """
        if self.session is None:
            raise RuntimeError("UnitOfWork.get_repo() called outside of context")

        if repo_cls in self._repo_cache:
            return self._repo_cache[repo_cls]  # type: ignore

        repo_instance = repo_cls(self.session)
        self._repo_cache[repo_cls] = repo_instance
        return repo_instance  # type: ignore

    @property
    def is_committed(self) -> bool:
        return self._committed
