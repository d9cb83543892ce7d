"""
Budget summary computation.

For every active category that counts toward the budget, combine its limit
(the period override when a period is selected, otherwise the category's own
default) with the expense and income totals of the transactions inside the
date window. Selecting a period never narrows the window: only an explicit
``start_date``/``end_date`` does.
"""

import logging
from dataclasses import dataclass, asdict
from typing import List, Optional

from sqlalchemy import and_, case, func
from sqlalchemy.orm import Session

from filters import DateWindow
from models import Category, Transaction, PeriodCategoryBudget

logger = logging.getLogger(__name__)


@dataclass
class CategorySummary:
    category_id: int
    name: str
    budget_limit: float
    spent: float
    income: float
    remaining: float
    percentage: float

    def to_dict(self):
        return asdict(self)


def summarize(category_id: int, name: str, budget_limit: float, spent: float, income: float) -> CategorySummary:
    """Derive remaining and percentage used. A zero limit always reports 0%."""
    budget_limit = float(budget_limit or 0)
    spent = float(spent or 0)
    percentage = (spent / budget_limit) * 100 if budget_limit > 0 else 0.0
    return CategorySummary(
        category_id=category_id,
        name=name,
        budget_limit=budget_limit,
        spent=spent,
        income=float(income or 0),
        remaining=budget_limit - spent,
        percentage=percentage,
    )


def _type_total(txn_type: str):
    return func.coalesce(
        func.sum(case((Transaction.type == txn_type, Transaction.amount), else_=0)),
        0,
    )


def budget_summary_query(db: Session, window: DateWindow = DateWindow(), period_id: Optional[int] = None):
    """
    Build the aggregate query behind the summary.

    The window predicates sit in the transaction join so categories without
    matching transactions still come back with zero totals.
    """
    txn_join = and_(Transaction.category_id == Category.id, *window.predicates(Transaction.date))

    if period_id is not None:
        limit_col = func.coalesce(PeriodCategoryBudget.budget_limit, Category.budget_limit)
        group_cols = [Category.id, Category.name, Category.budget_limit, PeriodCategoryBudget.budget_limit]
    else:
        limit_col = Category.budget_limit
        group_cols = [Category.id, Category.name, Category.budget_limit]

    q = db.query(
        Category.id.label("category_id"),
        Category.name.label("name"),
        limit_col.label("budget_limit"),
        _type_total("expense").label("spent"),
        _type_total("income").label("income"),
    ).select_from(Category)

    if period_id is not None:
        q = q.outerjoin(
            PeriodCategoryBudget,
            and_(
                PeriodCategoryBudget.category_id == Category.id,
                PeriodCategoryBudget.period_id == period_id,
            ),
        )

    return (
        q.outerjoin(Transaction, txn_join)
        .filter(Category.is_active.is_(True), Category.exclude_from_budget.is_(False))
        .group_by(*group_cols)
        .order_by(Category.name)
    )


def compute_budget_summary(
    db: Session, window: DateWindow = DateWindow(), period_id: Optional[int] = None
) -> List[CategorySummary]:
    rows = budget_summary_query(db, window, period_id).all()
    logger.debug(
        "Budget summary for %d categories (window=%s..%s, period=%s)",
        len(rows), window.start_date, window.end_date, period_id,
    )
    return [
        summarize(row.category_id, row.name, row.budget_limit, row.spent, row.income)
        for row in rows
    ]
