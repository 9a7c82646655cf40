"""
BaseService -- abstract base for kernel write services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write service in the kernel layer.  Services persist through
    ``session.flush()``; committing belongs to an explicit unit of work.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from agromed_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel write services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.
    """

    def __init__(self, session: Session):
        self.session = session
