"""
Module: ledger_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
    Selectors are the query side of the kernel: structured read access to
    ledger data without mutation capability.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain DTOs.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only: selectors never call session.add(), delete(), flush() or
      commit().
    - DTO return convention: selectors return frozen dataclasses, never ORM
      instances.
    - The caller owns the session and its transaction scope.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Non-goals:
        - Defines no query methods; subclasses implement them.
    """

    def __init__(self, session: Session):
        self.session = session
