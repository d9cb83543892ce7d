import calendar
import logging
import math
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import func, or_, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from exceptions import ValidationError, NotFoundError, ConflictError, StorageError
from filters import DateWindow
from models import (
    Category, Transaction, BudgetPeriod, PeriodCategoryBudget,
    TRANSACTION_TYPES, PERIOD_TYPES,
)

logger = logging.getLogger(__name__)

MAX_CATEGORY_NAME = 50

DEFAULT_CATEGORIES = [
    ("Food", 500, False),
    ("Transportation", 200, False),
    ("Entertainment", 150, False),
    ("Utilities", 300, False),
    ("Income", 0, True),
]


def _commit(db: Session, action: str):
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to %s", action)
        raise StorageError(str(exc)) from exc


# -------------------------------
# CATEGORIES
# -------------------------------

def _clean_category_name(name: Optional[str]) -> str:
    if name is None or not name.strip():
        raise ValidationError("Category name is required")
    name = name.strip()
    if len(name) > MAX_CATEGORY_NAME:
        raise ValidationError(
            f"Category name must be {MAX_CATEGORY_NAME} characters or less"
        )
    return name


def _check_budget_limit(limit) -> float:
    if limit is None or not math.isfinite(limit) or limit < 0:
        raise ValidationError("Budget limit must be zero or a positive number")
    return float(limit)


def _ensure_unique_name(db: Session, name: str, exclude_id: Optional[int] = None):
    q = db.query(Category.id).filter(func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        q = q.filter(Category.id != exclude_id)
    if q.first():
        raise ConflictError("Category name already exists")


def list_categories(db: Session, include_inactive: bool = False) -> List[Category]:
    q = db.query(Category)
    if not include_inactive:
        q = q.filter(Category.is_active.is_(True))
    return q.order_by(Category.name).all()


def get_category(db: Session, category_id: int) -> Category:
    category = db.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category not found")
    return category


def create_category(
    db: Session,
    name: str,
    budget_limit: float = 0,
    exclude_from_budget: Optional[bool] = None,
) -> Category:
    name = _clean_category_name(name)
    limit = _check_budget_limit(budget_limit)
    _ensure_unique_name(db, name)

    if exclude_from_budget is None:
        exclude_from_budget = name.lower() == "income"

    category = Category(
        name=name,
        budget_limit=limit,
        is_active=True,
        exclude_from_budget=exclude_from_budget,
    )
    db.add(category)
    _commit(db, "create category")
    db.refresh(category)
    return category


def update_category(db: Session, category_id: int, **fields) -> Category:
    fields = {k: v for k, v in fields.items() if v is not None}
    if not fields:
        raise ValidationError("At least one field must be provided to update")

    category = get_category(db, category_id)

    if "name" in fields:
        name = _clean_category_name(fields["name"])
        if name.lower() != category.name.lower():
            _ensure_unique_name(db, name, exclude_id=category.id)
        category.name = name
    if "budget_limit" in fields:
        category.budget_limit = _check_budget_limit(fields["budget_limit"])
    if "exclude_from_budget" in fields:
        category.exclude_from_budget = fields["exclude_from_budget"]
    if "is_active" in fields:
        category.is_active = fields["is_active"]

    category.updated_at = datetime.utcnow()
    _commit(db, "update category")
    db.refresh(category)
    return category


def delete_category(db: Session, category_id: int, hard_delete: bool = False) -> dict:
    """
    Soft-delete a category, or remove it when ``hard_delete`` is set.

    A category referenced by any transaction can only be deactivated; asking
    for a hard delete in that case raises ``ConflictError`` with the count.
    """
    category = get_category(db, category_id)
    transaction_count = (
        db.query(func.count(Transaction.id))
        .filter(Transaction.category_id == category.id)
        .scalar()
    )

    if hard_delete and transaction_count:
        logger.warning(
            "Refusing to delete category %s: %s transactions reference it",
            category.id, transaction_count,
        )
        raise ConflictError(
            "Cannot delete category with existing transactions",
            transaction_count=transaction_count,
        )

    if hard_delete:
        db.delete(category)
        _commit(db, "delete category")
        logger.info("Category %s permanently deleted", category_id)
        return {
            "success": True,
            "message": "Category permanently deleted",
            "deleted": True,
            "deactivated": False,
        }

    category.is_active = False
    category.updated_at = datetime.utcnow()
    _commit(db, "deactivate category")
    logger.info("Category %s deactivated", category_id)
    return {
        "success": True,
        "message": (
            "Category deactivated (has existing transactions)"
            if transaction_count else "Category deactivated"
        ),
        "deleted": False,
        "deactivated": True,
    }


def seed_default_categories(db: Session) -> int:
    """Insert the starter categories into an empty table. Returns rows added."""
    if db.query(Category.id).first():
        return 0
    for name, limit, excluded in DEFAULT_CATEGORIES:
        db.add(Category(name=name, budget_limit=limit, exclude_from_budget=excluded))
    _commit(db, "seed default categories")
    logger.info("Seeded %d default categories", len(DEFAULT_CATEGORIES))
    return len(DEFAULT_CATEGORIES)


# -------------------------------
# TRANSACTIONS
# -------------------------------

def _clean_description(description: Optional[str]) -> str:
    if description is None or not description.strip():
        raise ValidationError("Description cannot be empty")
    return description.strip()


def _check_amount(amount) -> float:
    if amount is None or not math.isfinite(amount) or amount <= 0:
        raise ValidationError("Amount must be a positive number")
    return float(amount)


def _to_utc(value: datetime) -> datetime:
    """Stored timestamps are naive UTC; aware values are converted first."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _check_transaction_type(txn_type: Optional[str]) -> str:
    if txn_type not in TRANSACTION_TYPES:
        raise ValidationError('Transaction type must be "income" or "expense"')
    return txn_type


def _check_category_ref(db: Session, category_id: Optional[int]):
    if category_id is not None and db.get(Category, category_id) is None:
        raise ValidationError(f"Category {category_id} does not exist")


def list_transactions(db: Session, window: DateWindow = DateWindow()) -> List[Transaction]:
    q = db.query(Transaction).options(joinedload(Transaction.category))
    q = window.apply(q, Transaction.date)
    return q.order_by(Transaction.date.desc(), Transaction.id.desc()).all()


def get_transaction(db: Session, transaction_id: int) -> Transaction:
    transaction = db.get(Transaction, transaction_id)
    if transaction is None:
        raise NotFoundError("Transaction not found")
    return transaction


def create_transaction(
    db: Session,
    description: str,
    amount: float,
    type: str,
    category_id: Optional[int] = None,
    date: Optional[datetime] = None,
) -> Transaction:
    transaction = Transaction(
        description=_clean_description(description),
        amount=_check_amount(amount),
        type=_check_transaction_type(type),
        category_id=category_id,
        date=_to_utc(date) if date else datetime.utcnow(),
    )
    _check_category_ref(db, category_id)

    db.add(transaction)
    _commit(db, "create transaction")
    db.refresh(transaction)
    return transaction


def update_transaction(db: Session, transaction_id: int, fields: dict) -> Transaction:
    if not fields:
        raise ValidationError("At least one field must be provided to update")

    transaction = get_transaction(db, transaction_id)

    if "description" in fields:
        transaction.description = _clean_description(fields["description"])
    if "amount" in fields:
        transaction.amount = _check_amount(fields["amount"])
    if "type" in fields:
        transaction.type = _check_transaction_type(fields["type"])
    if "category_id" in fields:
        _check_category_ref(db, fields["category_id"])
        transaction.category_id = fields["category_id"]
    if "date" in fields:
        if fields["date"] is None:
            raise ValidationError("Date cannot be empty")
        transaction.date = _to_utc(fields["date"])

    transaction.updated_at = datetime.utcnow()
    _commit(db, "update transaction")
    db.refresh(transaction)
    return transaction


def delete_transaction(db: Session, transaction_id: int) -> int:
    deleted = db.query(Transaction).filter(Transaction.id == transaction_id).delete()
    _commit(db, "delete transaction")
    if not deleted:
        raise NotFoundError("Transaction not found")
    return deleted


def clear_transactions(db: Session) -> int:
    deleted = db.query(Transaction).delete()
    _commit(db, "clear transactions")
    logger.info("Cleared %d transactions", deleted)
    return deleted


# -------------------------------
# BUDGET PERIODS
# -------------------------------

def _check_period_type(period_type: Optional[str]) -> str:
    if period_type not in PERIOD_TYPES:
        raise ValidationError("period_type must be weekly, monthly, or yearly")
    return period_type


def _check_period_dates(start_date: date, end_date: date):
    if start_date is None or end_date is None:
        raise ValidationError("start_date and end_date are required")
    if end_date < start_date:
        raise ValidationError("end_date must be on or after start_date")


def _ensure_no_overlap(
    db: Session, start_date: date, end_date: date, exclude_id: Optional[int] = None
):
    q = db.query(BudgetPeriod.id).filter(
        BudgetPeriod.is_active.is_(True),
        or_(
            and_(BudgetPeriod.start_date <= start_date, BudgetPeriod.end_date >= start_date),
            and_(BudgetPeriod.start_date <= end_date, BudgetPeriod.end_date >= end_date),
            and_(BudgetPeriod.start_date >= start_date, BudgetPeriod.start_date <= end_date),
        ),
    )
    if exclude_id is not None:
        q = q.filter(BudgetPeriod.id != exclude_id)
    overlap = q.first()
    if overlap:
        logger.warning(
            "Period %s..%s overlaps active period %s", start_date, end_date, overlap.id
        )
        raise ConflictError("Period dates overlap with existing active period")


def suggest_period_bounds(period_type: str, today: Optional[date] = None):
    """Default ``(start, end)`` for a new period of ``period_type`` around today.

    Weeks run Sunday to Saturday.
    """
    _check_period_type(period_type)
    today = today or date.today()

    if period_type == "weekly":
        start = today - timedelta(days=(today.weekday() + 1) % 7)
        return start, start + timedelta(days=6)
    if period_type == "monthly":
        last_day = calendar.monthrange(today.year, today.month)[1]
        return today.replace(day=1), today.replace(day=last_day)
    return date(today.year, 1, 1), date(today.year, 12, 31)


def list_periods(db: Session) -> List[BudgetPeriod]:
    return db.query(BudgetPeriod).order_by(BudgetPeriod.start_date.desc()).all()


def get_period(db: Session, period_id: int) -> BudgetPeriod:
    period = db.get(BudgetPeriod, period_id)
    if period is None:
        raise NotFoundError("Period not found")
    return period


def get_current_period(db: Session, today: Optional[date] = None) -> Optional[BudgetPeriod]:
    today = today or date.today()
    return (
        db.query(BudgetPeriod)
        .filter(
            BudgetPeriod.is_active.is_(True),
            BudgetPeriod.start_date <= today,
            BudgetPeriod.end_date >= today,
        )
        .order_by(BudgetPeriod.start_date.desc())
        .first()
    )


def create_period(db: Session, period_type: str, start_date: date, end_date: date) -> BudgetPeriod:
    """
    Create a period and snapshot every active category's limit into it.

    The period row and its override rows are committed together; if any
    insert fails nothing is kept.
    """
    _check_period_type(period_type)
    _check_period_dates(start_date, end_date)
    _ensure_no_overlap(db, start_date, end_date)

    try:
        period = BudgetPeriod(
            period_type=period_type,
            start_date=start_date,
            end_date=end_date,
            is_active=True,
        )
        db.add(period)
        db.flush()

        active = db.query(Category).filter(Category.is_active.is_(True)).all()
        db.add_all([
            PeriodCategoryBudget(
                period_id=period.id,
                category_id=category.id,
                budget_limit=category.budget_limit,
            )
            for category in active
        ])
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to create %s period %s..%s", period_type, start_date, end_date)
        raise StorageError(str(exc)) from exc

    db.refresh(period)
    logger.info(
        "Created %s period %s (%s..%s) with %d category budgets",
        period_type, period.id, start_date, end_date, len(active),
    )
    return period


def update_period(db: Session, period_id: int, fields: dict) -> BudgetPeriod:
    fields = {k: v for k, v in fields.items() if v is not None}
    if not fields:
        raise ValidationError("No fields to update")

    period = get_period(db, period_id)

    if "period_type" in fields:
        period.period_type = _check_period_type(fields["period_type"])

    start_date = fields.get("start_date", period.start_date)
    end_date = fields.get("end_date", period.end_date)
    if "start_date" in fields or "end_date" in fields:
        _check_period_dates(start_date, end_date)
        # toggling is_active alone never re-checks overlap
        if period.is_active:
            _ensure_no_overlap(db, start_date, end_date, exclude_id=period.id)
        period.start_date = start_date
        period.end_date = end_date

    if "is_active" in fields:
        period.is_active = fields["is_active"]

    _commit(db, "update period")
    db.refresh(period)
    return period


def delete_period(db: Session, period_id: int):
    period = get_period(db, period_id)
    db.delete(period)
    _commit(db, "delete period")
    logger.info("Period %s deleted", period_id)


def list_period_budgets(db: Session, period_id: int) -> List[PeriodCategoryBudget]:
    get_period(db, period_id)
    return (
        db.query(PeriodCategoryBudget)
        .join(Category, PeriodCategoryBudget.category_id == Category.id)
        .options(joinedload(PeriodCategoryBudget.category))
        .filter(PeriodCategoryBudget.period_id == period_id)
        .order_by(Category.name)
        .all()
    )


def update_period_budgets(db: Session, period_id: int, budgets: List[dict]) -> List[PeriodCategoryBudget]:
    """Set override limits for a period. Either every row is written or none."""
    if not budgets:
        raise ValidationError("Request body must be a non-empty list of budget objects")

    get_period(db, period_id)

    for item in budgets:
        _check_budget_limit(item.get("budget_limit"))
        if db.get(Category, item.get("category_id")) is None:
            raise NotFoundError(f"Category {item.get('category_id')} not found")

    existing = {
        row.category_id: row
        for row in db.query(PeriodCategoryBudget)
        .filter(PeriodCategoryBudget.period_id == period_id)
        .all()
    }

    try:
        for item in budgets:
            row = existing.get(item["category_id"])
            if row is None:
                row = PeriodCategoryBudget(period_id=period_id, category_id=item["category_id"])
                db.add(row)
                existing[item["category_id"]] = row
            row.budget_limit = float(item["budget_limit"])
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to update budgets for period %s", period_id)
        raise StorageError(str(exc)) from exc

    return list_period_budgets(db, period_id)
