from typing import List

from sqlalchemy import case, extract, func
from sqlalchemy.orm import Session

from filters import DateWindow
from models import Category, Transaction

TREND_MONTHS = 12


def expense_breakdown(db: Session, window: DateWindow = DateWindow()) -> List[dict]:
    """Expense totals per category, largest first. Categories with no expenses are left out."""
    total = func.sum(Transaction.amount).label("total")
    q = (
        db.query(Category.id, Category.name, total)
        .select_from(Category)
        .join(Transaction, Transaction.category_id == Category.id)
        .filter(Transaction.type == "expense")
    )
    q = window.apply(q, Transaction.date)
    rows = q.group_by(Category.id, Category.name).order_by(total.desc()).all()

    return [
        {"category_id": r.id, "name": r.name, "total": float(r.total)}
        for r in rows
    ]


def monthly_trend(db: Session, window: DateWindow = DateWindow()) -> List[dict]:
    """
    Income and expense totals per calendar month, oldest first.

    Without a window only the most recent twelve months are returned.
    """
    year = extract("year", Transaction.date).label("year")
    month = extract("month", Transaction.date).label("month")
    q = db.query(
        year,
        month,
        func.sum(case((Transaction.type == "income", Transaction.amount), else_=0)).label("income"),
        func.sum(case((Transaction.type == "expense", Transaction.amount), else_=0)).label("expenses"),
    )
    q = window.apply(q, Transaction.date)
    q = q.group_by(year, month).order_by(year.desc(), month.desc())
    if window.is_open:
        q = q.limit(TREND_MONTHS)

    return [
        {
            "month": f"{int(r.year):04d}-{int(r.month):02d}",
            "income": float(r.income or 0),
            "expenses": float(r.expenses or 0),
        }
        for r in reversed(q.all())
    ]


def income_vs_expense(db: Session, window: DateWindow = DateWindow()) -> List[dict]:
    q = db.query(Transaction.type, func.sum(Transaction.amount).label("total"))
    q = window.apply(q, Transaction.date)
    rows = q.group_by(Transaction.type).order_by(Transaction.type).all()

    return [{"type": r.type, "total": float(r.total)} for r in rows]
