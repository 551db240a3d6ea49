from __future__ import annotations

import math
from typing import Any

from sqlalchemy import func
from sqlmodel import Session, select


def paginate(session: Session, query: Any, *, page: int, limit: int) -> tuple[list[Any], int]:
    """
    Executa `query` paginada (page começa em 1) e retorna (itens, total).
    A query já deve vir com filtros e ordenação.
    """
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = session.exec(count_query).one()
    items = session.exec(query.limit(limit).offset((page - 1) * limit)).all()
    return list(items), int(total)


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0
