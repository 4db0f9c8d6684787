"""
utils/pagination.py — Offset pagination over a SQLAlchemy select().

Every list endpoint returns {"items": [...], "pagination": {...}} built here so
that `pages == ceil(total / limit)` holds everywhere.
"""

from __future__ import annotations

import math
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session


def pagination_meta(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }


def paginate(stmt: Select, page: int, limit: int, session: Session) -> tuple[list[Any], dict]:
    """
    Runs `stmt` for one page and counts the full result set.

    `stmt` must already carry its ORDER BY; the count is taken over the same
    statement with ordering stripped.
    """
    total = session.execute(
        select(func.count()).select_from(stmt.order_by(None).subquery())
    ).scalar_one()

    rows = session.execute(
        stmt.limit(limit).offset((page - 1) * limit)
    ).scalars().all()

    return list(rows), pagination_meta(page, limit, total)
