from sqlalchemy import (
    Column, Integer, String, Float, Boolean, Date, DateTime,
    ForeignKey, CheckConstraint, UniqueConstraint
)
from sqlalchemy.orm import relationship
from datetime import datetime
from database import Base


TRANSACTION_TYPES = ("income", "expense")
PERIOD_TYPES = ("weekly", "monthly", "yearly")


# -------------------------------
# CATEGORY MODEL
# -------------------------------

class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False)
    budget_limit = Column(Float, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    # replaces matching on the literal name "Income"
    exclude_from_budget = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# -------------------------------
# TRANSACTION MODEL
# -------------------------------

class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("type IN ('income', 'expense')", name="ck_transaction_type"),
        CheckConstraint("amount > 0", name="ck_transaction_amount"),
    )

    id = Column(Integer, primary_key=True, index=True)
    description = Column(String, nullable=False)
    amount = Column(Float, nullable=False)                  # always positive
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    type = Column(String, nullable=False)                   # income | expense
    date = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = relationship("Category")

    @property
    def category_name(self):
        return self.category.name if self.category is not None else None


# -------------------------------
# BUDGET PERIOD MODELS
# -------------------------------

class BudgetPeriod(Base):
    __tablename__ = "budget_periods"
    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="ck_period_dates"),
        CheckConstraint(
            "period_type IN ('weekly', 'monthly', 'yearly')", name="ck_period_type"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    period_type = Column(String, nullable=False, index=True)
    start_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    budgets = relationship(
        "PeriodCategoryBudget",
        back_populates="period",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class PeriodCategoryBudget(Base):
    __tablename__ = "period_category_budgets"
    __table_args__ = (
        UniqueConstraint("period_id", "category_id", name="uq_period_category"),
    )

    id = Column(Integer, primary_key=True, index=True)
    period_id = Column(
        Integer, ForeignKey("budget_periods.id", ondelete="CASCADE"),
        nullable=False, index=True
    )
    category_id = Column(
        Integer, ForeignKey("categories.id", ondelete="CASCADE"),
        nullable=False, index=True
    )
    budget_limit = Column(Float, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)

    period = relationship("BudgetPeriod", back_populates="budgets")
    category = relationship("Category")

    @property
    def category_name(self):
        return self.category.name if self.category is not None else None
