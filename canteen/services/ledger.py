"""
Canteen Service — Expenses and daily sales reports
"""
import logging
from datetime import datetime, time, timedelta, timezone

from canteen.models import Expense, SalesReport, User
from canteen.repositories import CanteenRepository
from canteen.schemas.inventory import ExpenseCreate, SalesReportCreate
from canteen.services import access

logger = logging.getLogger(__name__)


async def list_expenses(repo: CanteenRepository, actor: User | None) -> list[Expense]:
    return await repo.list_expenses(access.require_canteen(actor))


async def record_expense(repo: CanteenRepository, actor: User | None, payload: ExpenseCreate) -> Expense:
    canteen_id = access.require_canteen(actor)
    fields = payload.model_dump(exclude_none=True)
    return await repo.create_expense(Expense(**fields, canteen_id=canteen_id, recorded_by=actor.id))


async def list_sales_reports(repo: CanteenRepository, actor: User | None) -> list[SalesReport]:
    return await repo.list_sales_reports(access.require_canteen(actor))


async def create_sales_report(
    repo: CanteenRepository, actor: User | None, payload: SalesReportCreate
) -> SalesReport:
    """
    Store the day's totals. Missing totals are filled in from the canteen's
    completed orders placed on that (UTC) day.
    """
    canteen_id = access.require_canteen(actor)
    day = payload.date or datetime.now(tz=timezone.utc).date()
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)

    total_sales, total_orders = payload.total_sales, payload.total_orders
    if total_sales is None or total_orders is None:
        completed = await repo.list_completed_orders_between(canteen_id, start, start + timedelta(days=1))
        if total_sales is None:
            total_sales = sum(o.total_amount for o in completed)
        if total_orders is None:
            total_orders = len(completed)

    report = await repo.create_sales_report(
        SalesReport(
            canteen_id=canteen_id,
            date=start,
            total_sales=total_sales,
            total_orders=total_orders,
            cash_sales=payload.cash_sales,
            online_sales=payload.online_sales,
            generated_by=actor.id,
        )
    )
    logger.info(
        "Sales report %s for canteen %s on %s: %d order(s), %d total",
        report.id, canteen_id, day.isoformat(), total_orders, total_sales,
    )
    return report
