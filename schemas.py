from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Literal
from datetime import date, datetime


TransactionType = Literal["income", "expense"]
PeriodType = Literal["weekly", "monthly", "yearly"]


# ----------------------------
# CATEGORY SCHEMAS
# ----------------------------

class CategoryCreate(BaseModel):
    name: str
    budget_limit: float = 0
    exclude_from_budget: Optional[bool] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = None
    budget_limit: Optional[float] = None
    exclude_from_budget: Optional[bool] = None
    is_active: Optional[bool] = None


class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    budget_limit: float
    is_active: bool
    exclude_from_budget: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CategoryDeleteResult(BaseModel):
    success: bool = True
    message: str
    deleted: bool
    deactivated: bool


# ----------------------------
# TRANSACTION SCHEMAS
# ----------------------------

class TransactionCreate(BaseModel):
    description: str
    amount: float
    type: TransactionType
    category_id: Optional[int] = None
    date: Optional[datetime] = None


class TransactionUpdate(BaseModel):
    description: Optional[str] = None
    amount: Optional[float] = None
    type: Optional[TransactionType] = None
    category_id: Optional[int] = None
    date: Optional[datetime] = None


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    description: str
    amount: float
    type: str
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    date: datetime
    updated_at: Optional[datetime] = None


# ----------------------------
# BUDGET PERIOD SCHEMAS
# ----------------------------

class PeriodCreate(BaseModel):
    period_type: PeriodType
    start_date: date
    end_date: date


class PeriodUpdate(BaseModel):
    period_type: Optional[PeriodType] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: Optional[bool] = None


class PeriodResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    period_type: str
    start_date: date
    end_date: date
    is_active: bool
    created_at: Optional[datetime] = None


class PeriodBounds(BaseModel):
    period_type: PeriodType
    start_date: date
    end_date: date


class PeriodBudgetUpdate(BaseModel):
    category_id: int
    budget_limit: float


class PeriodBudgetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category_id: int
    category_name: Optional[str] = None
    budget_limit: float


# ----------------------------
# SUMMARY / CHART SCHEMAS
# ----------------------------

class BudgetSummaryItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    category_id: int
    name: str
    budget_limit: float
    spent: float
    income: float
    remaining: float
    percentage: float


class ExpenseBreakdownItem(BaseModel):
    category_id: int
    name: str
    total: float


class MonthlyTrendItem(BaseModel):
    month: str = Field(..., description="Calendar month in YYYY-MM format")
    income: float
    expenses: float


class TypeTotal(BaseModel):
    type: str
    total: float
