"""
BaseService -- abstract base for session-bound staging services.

Responsibility:
    Common constructor and session-handling contract.  Concrete services
    receive a SQLAlchemy ``Session`` opened by ``StorePool.session_scope()``
    and use ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services.  The facade owns the unit of work; services flush
    inside it so a multi-statement operation (cancel: header then lines)
    commits or rolls back as one.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for session-bound services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``; the owning scope does.
    """

    def __init__(self, session: Session):
        self.session = session
