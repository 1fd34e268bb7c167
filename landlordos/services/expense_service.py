from __future__ import annotations

import math

from sqlalchemy import func
from sqlmodel import Session, col, select

from landlordos.domain.models import Expense, ExpenseCreate, ExpenseUpdate, Page
from landlordos.infra import audit
from landlordos.infra.db import get_engine
from landlordos.services.access_service import AuthContext
from landlordos.services.property_scope_service import PropertyScopeService


class ExpenseError(Exception):
    pass


class NotFoundError(ExpenseError):
    pass


class ForbiddenError(ExpenseError):
    pass


class ExpenseService:
    def __init__(self) -> None:
        self._scopes = PropertyScopeService()

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_scoped_expense(self, session: Session, context: AuthContext, expense_id: str) -> Expense:
        expense = session.exec(
            select(Expense).where(self._scopes.expenses_filter(context.scope)).where(Expense.id == expense_id)
        ).first()
        if expense is None:
            raise NotFoundError("expense not found")
        return expense

    def list_expenses(
        self,
        context: AuthContext,
        *,
        page: int = 1,
        limit: int = 20,
        category: str | None = None,
        property_id: str | None = None,
    ) -> tuple[list[Expense], Page]:
        with self._session() as session:
            predicate = self._scopes.expenses_filter(context.scope)
            statement = select(Expense).where(predicate)
            count_statement = select(func.count()).select_from(Expense).where(predicate)
            if property_id is not None:
                if not context.scope.allows_property_id(session, property_id):
                    raise ForbiddenError("you do not have permission to view expenses for this property")
                statement = statement.where(Expense.property_id == property_id)
                count_statement = count_statement.where(Expense.property_id == property_id)
            if category:
                statement = statement.where(Expense.category == category)
                count_statement = count_statement.where(Expense.category == category)
            rows = list(
                session.exec(
                    statement.order_by(col(Expense.expense_date).desc()).offset((page - 1) * limit).limit(limit)
                ).all()
            )
            total = int(session.exec(count_statement).one())
            return rows, Page(page=page, limit=limit, total=total, pages=math.ceil(total / limit))

    def create_expense(self, context: AuthContext, payload: ExpenseCreate) -> Expense:
        with self._session() as session:
            if not context.scope.allows_property_id(session, payload.property_id):
                raise ForbiddenError("you do not have permission to create expenses for this property")
            expense = Expense(**payload.model_dump())
            session.add(expense)
            session.commit()
            session.refresh(expense)

        audit.record(
            context.user_id,
            context.organization_id,
            "EXPENSE_CREATED",
            f"recorded {expense.category} expense of {expense.amount}",
            {"expense_id": expense.id, "property_id": expense.property_id, "amount": expense.amount},
            entity_id=expense.id,
        )
        return expense

    def update_expense(self, context: AuthContext, expense_id: str, payload: ExpenseUpdate) -> Expense:
        changes = {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None}
        with self._session() as session:
            expense = self._get_scoped_expense(session, context, expense_id)
            for field_name, value in changes.items():
                setattr(expense, field_name, value)
            session.add(expense)
            session.commit()
            session.refresh(expense)

        audit.record(
            context.user_id,
            context.organization_id,
            "EXPENSE_UPDATED",
            f"updated expense {expense.id}",
            {"expense_id": expense.id, "fields": sorted(changes)},
            entity_id=expense.id,
        )
        return expense

    def delete_expense(self, context: AuthContext, expense_id: str) -> None:
        with self._session() as session:
            expense = self._get_scoped_expense(session, context, expense_id)
            property_id = expense.property_id
            session.delete(expense)
            session.commit()

        audit.record(
            context.user_id,
            context.organization_id,
            "EXPENSE_DELETED",
            f"deleted expense {expense_id}",
            {"expense_id": expense_id, "property_id": property_id},
            entity_id=expense_id,
        )
