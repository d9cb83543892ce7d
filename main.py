import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import List, Optional

from fastapi import FastAPI, Depends, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.orm import Session, joinedload

import csv
from io import StringIO

import config
import crud
import charts
import models
from database import engine, SessionLocal, get_db
from exceptions import BudgetAppError
from filters import date_window
from models import Transaction
from summary import compute_budget_summary
from schemas import (
    CategoryCreate,
    CategoryUpdate,
    CategoryResponse,
    CategoryDeleteResult,
    TransactionCreate,
    TransactionUpdate,
    TransactionResponse,
    PeriodCreate,
    PeriodUpdate,
    PeriodResponse,
    PeriodBounds,
    PeriodBudgetUpdate,
    PeriodBudgetResponse,
    BudgetSummaryItem,
    ExpenseBreakdownItem,
    MonthlyTrendItem,
    TypeTotal,
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    models.Base.metadata.create_all(bind=engine)
    if config.SEED_DEFAULT_CATEGORIES:
        db = SessionLocal()
        try:
            crud.seed_default_categories(db)
        finally:
            db.close()
    logger.info("Budget API ready (database: %s)", engine.url.render_as_string(hide_password=True))
    yield


app = FastAPI(title="Budget API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(BudgetAppError)
def handle_budget_error(request: Request, exc: BudgetAppError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
def handle_request_validation(request: Request, exc: RequestValidationError):
    messages = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        messages.append(f"{field}: {err.get('msg')}" if field else err.get("msg"))
    return JSONResponse(status_code=400, content={"error": "; ".join(messages)})


def window_params(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
):
    return date_window(start_date, end_date)


@app.get("/")
def read_root():
    return {"message": "Budget API is running"}


# ----------------------------
# TRANSACTIONS
# ----------------------------

@app.get("/transactions", response_model=List[TransactionResponse])
def get_transactions(window=Depends(window_params), db: Session = Depends(get_db)):
    return crud.list_transactions(db, window)


@app.post("/transactions", response_model=TransactionResponse, status_code=201)
def add_transaction(txn: TransactionCreate, db: Session = Depends(get_db)):
    return crud.create_transaction(db, **txn.model_dump())


@app.put("/transactions/{txn_id}", response_model=TransactionResponse)
def update_transaction(txn_id: int, txn: TransactionUpdate, db: Session = Depends(get_db)):
    return crud.update_transaction(db, txn_id, txn.model_dump(exclude_unset=True))


@app.delete("/transactions/{txn_id}")
def delete_transaction(txn_id: int, db: Session = Depends(get_db)):
    deleted = crud.delete_transaction(db, txn_id)
    return {"message": "Transaction deleted", "deleted_rows": deleted}


@app.delete("/clear-database")
def clear_database(db: Session = Depends(get_db)):
    deleted = crud.clear_transactions(db)
    return {"message": "All transactions deleted successfully", "deleted_rows": deleted}


# ----------------------------
# CATEGORIES
# ----------------------------

@app.get("/categories", response_model=List[CategoryResponse])
def get_categories(include_inactive: bool = Query(False), db: Session = Depends(get_db)):
    return crud.list_categories(db, include_inactive=include_inactive)


@app.get("/categories/{category_id}", response_model=CategoryResponse)
def get_category(category_id: int, db: Session = Depends(get_db)):
    return crud.get_category(db, category_id)


@app.post("/categories", response_model=CategoryResponse, status_code=201)
def add_category(data: CategoryCreate, db: Session = Depends(get_db)):
    return crud.create_category(db, **data.model_dump())


@app.put("/categories/{category_id}", response_model=CategoryResponse)
def update_category(category_id: int, data: CategoryUpdate, db: Session = Depends(get_db)):
    return crud.update_category(db, category_id, **data.model_dump(exclude_unset=True))


@app.delete("/categories/{category_id}", response_model=CategoryDeleteResult)
def delete_category(
    category_id: int,
    hard_delete: bool = Query(False),
    db: Session = Depends(get_db),
):
    return crud.delete_category(db, category_id, hard_delete=hard_delete)


# ----------------------------
# BUDGET PERIODS
# ----------------------------

@app.get("/periods", response_model=List[PeriodResponse])
def get_periods(db: Session = Depends(get_db)):
    return crud.list_periods(db)


@app.get("/periods/current", response_model=Optional[PeriodResponse])
def get_current_period(db: Session = Depends(get_db)):
    return crud.get_current_period(db)


@app.get("/periods/suggest", response_model=PeriodBounds)
def suggest_period(period_type: str = Query("monthly")):
    start, end = crud.suggest_period_bounds(period_type)
    return {"period_type": period_type, "start_date": start, "end_date": end}


@app.get("/periods/{period_id}", response_model=PeriodResponse)
def get_period(period_id: int, db: Session = Depends(get_db)):
    return crud.get_period(db, period_id)


@app.post("/periods", response_model=PeriodResponse, status_code=201)
def add_period(data: PeriodCreate, db: Session = Depends(get_db)):
    return crud.create_period(db, data.period_type, data.start_date, data.end_date)


@app.put("/periods/{period_id}", response_model=PeriodResponse)
def update_period(period_id: int, data: PeriodUpdate, db: Session = Depends(get_db)):
    return crud.update_period(db, period_id, data.model_dump(exclude_unset=True))


@app.delete("/periods/{period_id}")
def delete_period(period_id: int, db: Session = Depends(get_db)):
    crud.delete_period(db, period_id)
    return {"success": True, "message": "Period deleted successfully"}


@app.get("/periods/{period_id}/budgets", response_model=List[PeriodBudgetResponse])
def get_period_budgets(period_id: int, db: Session = Depends(get_db)):
    return crud.list_period_budgets(db, period_id)


@app.put("/periods/{period_id}/budgets", response_model=List[PeriodBudgetResponse])
def update_period_budgets(
    period_id: int,
    budgets: List[PeriodBudgetUpdate],
    db: Session = Depends(get_db),
):
    return crud.update_period_budgets(db, period_id, [b.model_dump() for b in budgets])


# ----------------------------
# SUMMARY & CHARTS
# ----------------------------

@app.get("/budget-summary", response_model=List[BudgetSummaryItem])
def budget_summary(
    window=Depends(window_params),
    period_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    return [row.to_dict() for row in compute_budget_summary(db, window, period_id)]


@app.get("/charts/expense-breakdown", response_model=List[ExpenseBreakdownItem])
def chart_expense_breakdown(window=Depends(window_params), db: Session = Depends(get_db)):
    return charts.expense_breakdown(db, window)


@app.get("/charts/monthly-trend", response_model=List[MonthlyTrendItem])
def chart_monthly_trend(window=Depends(window_params), db: Session = Depends(get_db)):
    return charts.monthly_trend(db, window)


@app.get("/charts/income-expense", response_model=List[TypeTotal])
def chart_income_expense(window=Depends(window_params), db: Session = Depends(get_db)):
    return charts.income_vs_expense(db, window)


# ----------------------------
# EXPORT
# ----------------------------

@app.get("/export/csv")
def export_csv(db: Session = Depends(get_db)):
    """
    Export every transaction as CSV, newest first
    """
    transactions = (
        db.query(Transaction)
        .options(joinedload(Transaction.category))
        .order_by(Transaction.date.desc(), Transaction.id.desc())
        .all()
    )

    output = StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_NONNUMERIC)

    writer.writerow(["ID", "Description", "Amount", "Type", "Date", "Category"])

    for t in transactions:
        writer.writerow([
            t.id,
            t.description,
            t.amount,
            t.type,
            t.date.strftime("%Y-%m-%d %H:%M:%S"),
            t.category_name or "",
        ])

    output.seek(0)
    logger.info("Exported %d transactions to CSV", len(transactions))

    return StreamingResponse(
        output,
        media_type="text/csv",
        headers={
            "Content-Disposition": 'attachment; filename="budget_transactions.csv"'
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)
