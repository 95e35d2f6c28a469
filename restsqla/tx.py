# -*- coding: utf-8 -*-

"""Transaction (unit-of-work) helpers.

Every restsqla write operation runs inside exactly one transaction:
- the work commits when it returns and rolls back when it raises
- the original exception is propagated unchanged after a rollback
- a failing rollback is reported as a ``DatabaseError`` that carries both exceptions

Transactions don't nest: a ``Transaction`` entered while another one is active
on the same session joins the active one, the outer transaction decides
whether to commit or roll back. The writes of a joined transaction run in a
savepoint, so a failure that is caught by the caller leaves no partial rows
behind in the outer transaction.
"""

from __future__ import annotations

from contextvars import ContextVar, Token
from typing import Any, Callable, Optional

import restsqla
from .errors import DatabaseError

_ACTIVE_TX: ContextVar[Optional["Transaction"]] = ContextVar("restsqla_active_tx", default=None)


def active_transaction() -> Optional["Transaction"]:
    """Return the transaction active in the current context, if any."""
    return _ACTIVE_TX.get()


def _rollback(rollback: Callable[[], Any], original: Optional[BaseException]) -> None:
    try:
        rollback()
    except Exception as rollback_error:
        raise DatabaseError(
            f"Rollback failed after {original!r}: {rollback_error}", original=original, rollback_error=rollback_error
        ) from original


class Transaction:
    """
    Context manager around a SQLAlchemy session

        with Transaction(db.session) as tx:
            tx.session.add(instance)

    :param session: SQLAlchemy session (or scoped session)
    """

    def __init__(self, session: Any) -> None:
        self.session = session
        self.finished = False
        self.outer: Optional[Transaction] = None
        self.savepoint: Any = None
        self._token: Optional[Token] = None

    @property
    def joined(self) -> bool:
        """True when this transaction joined an already active transaction."""
        return self.outer is not None

    def __enter__(self) -> "Transaction":
        active = _ACTIVE_TX.get()
        if active is not None and active.session is self.session:
            self.outer = active
            self.savepoint = self.session.begin_nested()
            return active
        self._token = _ACTIVE_TX.set(self)
        return self

    def __exit__(self, exc_type, exc, traceback) -> bool:
        if self.joined:
            self._exit_savepoint(exc)
            return False
        try:
            if exc is not None:
                restsqla.log.warning(f"Rolling back transaction: {exc!r}")
                self.rollback(exc)
            elif not self.finished:
                self.commit()
        finally:
            _ACTIVE_TX.reset(self._token)
            self._token = None
        return False

    def _exit_savepoint(self, exc: Optional[BaseException]) -> None:
        self.finished = True
        if not self.savepoint.is_active:
            # the outer transaction was committed or rolled back inside the block
            return
        if exc is not None:
            restsqla.log.warning(f"Rolling back savepoint: {exc!r}")
            _rollback(self.savepoint.rollback, exc)
        else:
            self.savepoint.commit()

    def commit(self) -> None:
        """
        Commit the transaction, roll back if the commit fails
        """
        try:
            self.session.commit()
        except Exception as exc:
            restsqla.log.warning(f"Commit failed: {exc!r}")
            self.rollback(exc)
            raise
        finally:
            self.finished = True

    def rollback(self, original: Optional[BaseException] = None) -> None:
        """
        Roll back the transaction
        :param original: the exception that caused the rollback
        """
        self.finished = True
        _rollback(self.session.rollback, original)


def run_in_transaction(session: Any, work: Callable[[Transaction], Any]) -> Any:
    """
    Run `work` inside one transaction
    :param session: SQLAlchemy session
    :param work: callable that receives the transaction, it may commit or roll back explicitly
    :return: the result of `work`
    """
    with Transaction(session) as tx:
        return work(tx)
