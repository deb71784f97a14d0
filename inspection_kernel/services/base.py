"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor and session-handling contract for every write
    service in the kernel layer.  Services use ``session.flush()`` --
    never ``session.commit()``.

Architecture position:
    Kernel > Services.  The orchestrator in ``inspection_services`` opens
    the transaction (``session_scope``) and owns commit/rollback, so one
    workflow step (for example: conditional status update, approval row,
    vehicle update) commits or rolls back as a unit.

Failure modes:
    - A subclass that commits on its own breaks that atomicity: a failed
      approval insert would leave the status already changed.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from inspection_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and flushes
        changes within the active transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read projections -- those belong in
          ``inspection_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
