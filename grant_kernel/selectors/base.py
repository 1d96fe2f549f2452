"""
Module: grant_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors, plus
    the shared pagination helper.
Architecture position: Kernel > Selectors.  May import from db/, models/
    and domain/.  MUST NOT import from services/.

Invariants enforced:
    - Read-only access: selectors never add, delete, flush or commit.
    - DTO return convention: selectors return frozen DTOs or Page objects,
      never ORM instances, except the ``_load_*`` helpers services use for
      row locking.
    - Session ownership: the caller owns the session and its transaction.
"""

from abc import ABC
from typing import Callable, Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from grant_kernel.db.base import Base
from grant_kernel.domain.dtos import Page

ModelType = TypeVar("ModelType", bound=Base)
T = TypeVar("T")

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs.  They MUST NOT mutate any data.
    """

    def __init__(
        self,
        session: Session,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
    ):
        """
        Args:
            session: SQLAlchemy session for database operations.
            default_page_size: Page size when the caller passes none.
            max_page_size: Upper bound on any requested page size.
        """
        self.session = session
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    def _paginate(
        self,
        stmt: Select,
        to_dto: Callable[[ModelType], T],
        page: int = 1,
        limit: int | None = None,
    ) -> Page[T]:
        """
        Run *stmt* for one page and wrap it with the total count.

        ``page`` is 1-based; values below 1 are treated as 1.  ``limit`` is
        clamped to ``[1, max_page_size]``.
        """
        page = max(page, 1)
        limit = self.default_page_size if limit is None else limit
        limit = min(max(limit, 1), self.max_page_size)

        count_stmt = select(func.count()).select_from(
            stmt.order_by(None).subquery()
        )
        total = self.session.execute(count_stmt).scalar_one()

        rows = self.session.execute(
            stmt.limit(limit).offset((page - 1) * limit)
        ).scalars().all()

        return Page.build([to_dto(row) for row in rows], total, page, limit)
