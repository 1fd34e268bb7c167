from __future__ import annotations

import calendar
from datetime import date, timedelta

from sqlalchemy import func
from sqlmodel import Session, col, select

from landlordos.domain.models import (
    DashboardOverviewRead,
    Expense,
    ExpenseRead,
    FinancialSummaryRead,
    FinancialTotalsRead,
    Lease,
    LeaseStatus,
    MaintenanceStatus,
    MaintenanceTask,
    MonthlyFinancialRead,
    Payment,
    PaymentStatus,
    Property,
    PropertyPerformanceRead,
    Reminder,
    ReminderRead,
    today_utc,
)
from landlordos.infra.db import get_engine
from landlordos.services.access_service import AuthContext
from landlordos.services.property_scope_service import PropertyScopeService

UPCOMING_REMINDER_DAYS = 30
DASHBOARD_LIST_SIZE = 5


class DashboardService:
    def __init__(self) -> None:
        self._scopes = PropertyScopeService()

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def get_overview(self, context: AuthContext, today: date | None = None) -> DashboardOverviewRead:
        today = today or today_utc()
        month_start = today.replace(day=1)
        year_start = today.replace(month=1, day=1)
        scope = context.scope

        with self._session() as session:
            properties = list(session.exec(select(Property).where(self._scopes.properties_filter(scope))).all())
            active_leases = list(
                session.exec(
                    select(Lease)
                    .where(self._scopes.leases_filter(scope))
                    .where(Lease.status == LeaseStatus.ACTIVE)
                ).all()
            )
            expenses_filter = self._scopes.expenses_filter(scope)
            monthly_expenses = session.exec(
                select(func.coalesce(func.sum(Expense.amount), 0.0))
                .where(expenses_filter)
                .where(Expense.expense_date >= month_start)
            ).one()
            yearly_expenses = session.exec(
                select(func.coalesce(func.sum(Expense.amount), 0.0))
                .where(expenses_filter)
                .where(Expense.expense_date >= year_start)
            ).one()
            month_expense_rows = session.exec(
                select(Expense.property_id, func.sum(Expense.amount))
                .where(expenses_filter)
                .where(Expense.expense_date >= month_start)
                .group_by(Expense.property_id)
            ).all()
            upcoming_reminders = list(
                session.exec(
                    select(Reminder)
                    .where(self._scopes.reminders_filter(scope))
                    .where(Reminder.is_completed == False)  # noqa: E712
                    .where(Reminder.due_date >= today)
                    .where(Reminder.due_date <= today + timedelta(days=UPCOMING_REMINDER_DAYS))
                    .order_by(col(Reminder.due_date).asc())
                    .limit(DASHBOARD_LIST_SIZE)
                ).all()
            )
            pending_maintenance = session.exec(
                select(func.count())
                .select_from(MaintenanceTask)
                .where(self._scopes.maintenance_filter(scope))
                .where(col(MaintenanceTask.status).in_([MaintenanceStatus.PENDING, MaintenanceStatus.IN_PROGRESS]))
            ).one()
            recent_expenses = list(
                session.exec(
                    select(Expense)
                    .where(expenses_filter)
                    .order_by(col(Expense.expense_date).desc())
                    .limit(DASHBOARD_LIST_SIZE)
                ).all()
            )

        rent_by_property: dict[str, float] = {}
        for lease in active_leases:
            rent_by_property[lease.property_id] = rent_by_property.get(lease.property_id, 0.0) + lease.monthly_rent
        expenses_by_property = {property_id: float(total or 0.0) for property_id, total in month_expense_rows}

        performance: list[PropertyPerformanceRead] = []
        for prop in properties:
            rent = rent_by_property.get(prop.id, 0.0)
            spent = expenses_by_property.get(prop.id, 0.0)
            net = rent - spent
            performance.append(
                PropertyPerformanceRead(
                    id=prop.id,
                    address=prop.address,
                    city=prop.city,
                    monthly_rent=rent,
                    monthly_expenses=spent,
                    net_income=net,
                    profit_margin=round(net / rent * 100, 1) if rent > 0 else 0.0,
                )
            )

        monthly_rent_income = sum(lease.monthly_rent for lease in active_leases)
        occupied = len(set(rent_by_property))
        return DashboardOverviewRead(
            property_count=len(properties),
            active_lease_count=len(active_leases),
            monthly_rent_income=monthly_rent_income,
            monthly_expenses=float(monthly_expenses),
            yearly_expenses=float(yearly_expenses),
            monthly_net_income=monthly_rent_income - float(monthly_expenses),
            occupancy_rate=round(occupied / len(properties) * 100, 1) if properties else 0.0,
            pending_maintenance_count=int(pending_maintenance),
            upcoming_reminders=[ReminderRead.model_validate(item) for item in upcoming_reminders],
            recent_expenses=[ExpenseRead.model_validate(item) for item in recent_expenses],
            property_performance=performance,
        )

    def get_financial_summary(self, context: AuthContext, year: int | None = None) -> FinancialSummaryRead:
        """Month-by-month income and expenses for one calendar year.

        Income is the sum of PAID payments in the month. Months without any
        paid rent fall back to the rent of ACTIVE leases covering the whole month.
        """
        year = year or today_utc().year
        year_start = date(year, 1, 1)
        year_end = date(year, 12, 31)
        scope = context.scope

        with self._session() as session:
            active_leases = list(
                session.exec(
                    select(Lease)
                    .where(self._scopes.leases_filter(scope))
                    .where(Lease.status == LeaseStatus.ACTIVE)
                ).all()
            )
            payments = session.exec(
                select(Payment.paid_date, Payment.amount)
                .where(self._scopes.payments_filter(scope))
                .where(Payment.status == PaymentStatus.PAID)
                .where(col(Payment.paid_date) >= year_start)
                .where(col(Payment.paid_date) <= year_end)
            ).all()
            expenses = session.exec(
                select(Expense.expense_date, Expense.amount)
                .where(self._scopes.expenses_filter(scope))
                .where(Expense.expense_date >= year_start)
                .where(Expense.expense_date <= year_end)
            ).all()

        paid_by_month: dict[int, float] = {}
        for paid_date, amount in payments:
            paid_by_month[paid_date.month] = paid_by_month.get(paid_date.month, 0.0) + amount
        spent_by_month: dict[int, float] = {}
        for expense_date, amount in expenses:
            spent_by_month[expense_date.month] = spent_by_month.get(expense_date.month, 0.0) + amount

        monthly: list[MonthlyFinancialRead] = []
        for month in range(1, 13):
            month_start = date(year, month, 1)
            month_end = date(year, month, calendar.monthrange(year, month)[1])
            income = paid_by_month.get(month, 0.0)
            if not income:
                income = sum(
                    lease.monthly_rent
                    for lease in active_leases
                    if lease.start_date <= month_start and lease.end_date >= month_end
                )
            spent = spent_by_month.get(month, 0.0)
            monthly.append(
                MonthlyFinancialRead(
                    month=month,
                    month_name=calendar.month_name[month],
                    income=income,
                    expenses=spent,
                    net_income=income - spent,
                )
            )

        return FinancialSummaryRead(
            year=year,
            monthly_data=monthly,
            totals=FinancialTotalsRead(
                income=sum(item.income for item in monthly),
                expenses=sum(item.expenses for item in monthly),
                net_income=sum(item.net_income for item in monthly),
            ),
        )
