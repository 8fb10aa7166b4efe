from sqlalchemy import func
from sqlmodel import Session, select

MAX_PAGE_SIZE = 100


def paginate(
    *,
    session: Session,
    query,
    page: int = 1,
    limit: int = 10,
):
    """Run ``query`` for one page and count the full result set."""
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)

    total = session.exec(
        select(func.count()).select_from(query.order_by(None).subquery())
    ).one()

    results = session.exec(
        query.offset((page - 1) * limit).limit(limit)
    ).all()

    return {
        "total_items": total,
        "total_pages": (total + limit - 1) // limit,
        "current_page": page,
        "limit": limit,
        "results": results,
    }
