from __future__ import annotations

from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from pydantic import Field as PydanticField
from sqlalchemy import JSON, Column, Index, UniqueConstraint
from sqlmodel import Field, SQLModel


def now_utc() -> datetime:
    return datetime.now(UTC)


def today_utc() -> date:
    return now_utc().date()


class OrganizationType(StrEnum):
    INDIVIDUAL_LANDLORD = "INDIVIDUAL_LANDLORD"
    PROPERTY_MANAGEMENT = "PROPERTY_MANAGEMENT"
    REAL_ESTATE_COMPANY = "REAL_ESTATE_COMPANY"
    INVESTMENT_FIRM = "INVESTMENT_FIRM"
    OTHER = "OTHER"


class AssignmentRoleType(StrEnum):
    VIEWER = "VIEWER"
    COORDINATOR = "COORDINATOR"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"


class PropertyType(StrEnum):
    SINGLE_FAMILY = "SINGLE_FAMILY"
    DUPLEX = "DUPLEX"
    CONDO = "CONDO"
    TOWNHOUSE = "TOWNHOUSE"
    APARTMENT = "APARTMENT"
    OTHER = "OTHER"


class LeaseStatus(StrEnum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    TERMINATED = "TERMINATED"


class PaymentStatus(StrEnum):
    PENDING = "PENDING"
    PAID = "PAID"
    LATE = "LATE"


class MaintenancePriority(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class MaintenanceStatus(StrEnum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Organization(SQLModel, table=True):
    __tablename__ = "organizations"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    name: str = Field(index=True)
    slug: str = Field(index=True, unique=True)
    type: OrganizationType = Field(default=OrganizationType.INDIVIDUAL_LANDLORD)
    settings: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    email: str | None = None
    phone: str | None = None
    website: str | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc, index=True)


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    organization_id: str = Field(foreign_key="organizations.id", index=True)
    email: str = Field(index=True, unique=True)
    password_hash: str
    first_name: str
    last_name: str
    phone: str | None = None
    is_active: bool = Field(default=True)
    last_login: datetime | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc, index=True)


class Role(SQLModel, table=True):
    __tablename__ = "roles"
    __table_args__ = (UniqueConstraint("organization_id", "name", name="uq_roles_organization_name"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    organization_id: str | None = Field(default=None, foreign_key="organizations.id", index=True)
    name: str = Field(index=True)
    description: str | None = None
    level: int = Field(default=1, index=True)
    permissions: list[str] | dict[str, Any] | None = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
    )
    is_system_role: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)


class UserRole(SQLModel, table=True):
    __tablename__ = "user_roles"
    __table_args__ = (
        Index("ix_user_roles_user_active", "user_id", "is_active"),
        Index("ix_user_roles_organization_user", "organization_id", "user_id"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    role_id: str = Field(foreign_key="roles.id", index=True)
    organization_id: str = Field(foreign_key="organizations.id", index=True)
    is_active: bool = Field(default=True)
    assigned_at: datetime = Field(default_factory=now_utc, index=True)
    assigned_by: str | None = None


class Property(SQLModel, table=True):
    __tablename__ = "properties"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    organization_id: str = Field(foreign_key="organizations.id", index=True)
    address: str = Field(index=True)
    city: str
    state: str
    zip_code: str
    type: PropertyType = Field(default=PropertyType.SINGLE_FAMILY)
    bedrooms: int | None = None
    bathrooms: float | None = None
    square_feet: int | None = None
    purchase_price: float | None = None
    current_value: float | None = None
    mortgage: float | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc, index=True)


class Assignment(SQLModel, table=True):
    __tablename__ = "assignments"
    __table_args__ = (
        UniqueConstraint("user_id", "property_id", name="uq_assignments_user_property"),
        Index("ix_assignments_user_active", "user_id", "is_active"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    property_id: str = Field(foreign_key="properties.id", index=True)
    organization_id: str = Field(foreign_key="organizations.id", index=True)
    role_type: AssignmentRoleType = Field(default=AssignmentRoleType.MANAGER)
    permissions: dict[str, Any] | None = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
    )
    is_active: bool = Field(default=True)
    assigned_by: str | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)


class PropertyInsurance(SQLModel, table=True):
    __tablename__ = "property_insurance"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    property_id: str = Field(foreign_key="properties.id", index=True, unique=True)
    provider: str
    policy_number: str
    premium: float | None = None
    expires_on: date | None = None


class Tenant(SQLModel, table=True):
    __tablename__ = "tenants"
    __table_args__ = (UniqueConstraint("organization_id", "email", name="uq_tenants_organization_email"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    organization_id: str = Field(foreign_key="organizations.id", index=True)
    first_name: str
    last_name: str
    email: str = Field(index=True)
    phone: str
    emergency_contact: str | None = None
    emergency_phone: str | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)


class Lease(SQLModel, table=True):
    __tablename__ = "leases"
    __table_args__ = (Index("ix_leases_property_status", "property_id", "status"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    property_id: str = Field(foreign_key="properties.id", index=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    start_date: date
    end_date: date
    monthly_rent: float
    security_deposit: float | None = None
    status: LeaseStatus = Field(default=LeaseStatus.ACTIVE, index=True)
    terms: str | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)


class Payment(SQLModel, table=True):
    __tablename__ = "payments"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    lease_id: str = Field(foreign_key="leases.id", index=True)
    amount: float
    due_date: date = Field(index=True)
    paid_date: date | None = None
    status: PaymentStatus = Field(default=PaymentStatus.PENDING, index=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)


class Expense(SQLModel, table=True):
    __tablename__ = "expenses"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    property_id: str = Field(foreign_key="properties.id", index=True)
    description: str
    amount: float
    category: str = Field(index=True)
    expense_date: date = Field(index=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)


class MaintenanceTask(SQLModel, table=True):
    __tablename__ = "maintenance_tasks"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    property_id: str = Field(foreign_key="properties.id", index=True)
    title: str
    description: str | None = None
    priority: MaintenancePriority = Field(default=MaintenancePriority.MEDIUM, index=True)
    status: MaintenanceStatus = Field(default=MaintenanceStatus.PENDING, index=True)
    due_date: date | None = Field(default=None, index=True)
    cost: float | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)


class Reminder(SQLModel, table=True):
    __tablename__ = "reminders"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    property_id: str | None = Field(default=None, foreign_key="properties.id", index=True)
    lease_id: str | None = Field(default=None, foreign_key="leases.id", index=True)
    title: str
    description: str | None = None
    due_date: date = Field(index=True)
    is_completed: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    organization_id: str = Field(index=True)
    user_id: str | None = Field(default=None, index=True)
    action: str = Field(index=True)
    entity_type: str | None = Field(default=None, index=True)
    entity_id: str | None = None
    description: str | None = None
    payload: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    ts: datetime = Field(default_factory=now_utc, index=True)


class ORMReadModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class Page(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class RegisterRequest(BaseModel):
    email: str = PydanticField(min_length=3)
    password: str = PydanticField(min_length=6)
    first_name: str = PydanticField(min_length=1)
    last_name: str = PydanticField(min_length=1)
    phone: str | None = None
    organization_name: str | None = None


class LoginRequest(BaseModel):
    email: str
    password: str


class ProfileUpdate(BaseModel):
    first_name: str | None = PydanticField(default=None, min_length=1)
    last_name: str | None = PydanticField(default=None, min_length=1)
    phone: str | None = None


class OrganizationRead(ORMReadModel):
    id: str
    name: str
    slug: str
    type: OrganizationType
    settings: dict[str, Any]
    email: str | None = None
    phone: str | None = None
    website: str | None = None
    created_at: datetime


class OrganizationUpdate(BaseModel):
    name: str | None = PydanticField(default=None, min_length=1)
    type: OrganizationType | None = None
    settings: dict[str, Any] | None = None
    email: str | None = None
    phone: str | None = None
    website: str | None = None


class OrganizationDetailRead(BaseModel):
    organization: OrganizationRead
    user_count: int
    property_count: int
    active_role_count: int


class UserRead(ORMReadModel):
    id: str
    organization_id: str
    email: str
    first_name: str
    last_name: str
    phone: str | None = None
    is_active: bool
    last_login: datetime | None = None
    created_at: datetime


class RoleCreate(BaseModel):
    name: str = PydanticField(min_length=1)
    description: str | None = None
    level: int = PydanticField(ge=0)
    permissions: list[str] | dict[str, Any] = PydanticField(default_factory=list)


class RoleRead(ORMReadModel):
    id: str
    organization_id: str | None = None
    name: str
    description: str | None = None
    level: int
    permissions: list[str] | dict[str, Any] | None = None
    is_system_role: bool


class AssignmentCreate(BaseModel):
    property_id: str
    role_type: AssignmentRoleType = AssignmentRoleType.MANAGER
    permissions: dict[str, Any] | None = None


class AssignmentRead(ORMReadModel):
    id: str
    user_id: str
    property_id: str
    organization_id: str
    role_type: AssignmentRoleType
    permissions: dict[str, Any] | None = None
    is_active: bool
    assigned_by: str | None = None


class MemberRead(BaseModel):
    user: UserRead
    roles: list[RoleRead]
    assignments: list[AssignmentRead]


class InviteUserRequest(BaseModel):
    email: str = PydanticField(min_length=3)
    first_name: str = PydanticField(min_length=1)
    last_name: str = PydanticField(min_length=1)
    role_id: str
    property_ids: list[str] = PydanticField(default_factory=list)


class InviteUserRead(BaseModel):
    user: UserRead
    temp_password: str


class UserRoleUpdateRequest(BaseModel):
    role_id: str


class ProfileRead(BaseModel):
    user: UserRead
    organization: OrganizationRead
    roles: list[RoleRead]
    permissions: list[str]
    assigned_property_ids: list[str]
    max_role_level: int


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    permissions: list[str] = PydanticField(default_factory=list)
    assigned_property_ids: list[str] = PydanticField(default_factory=list)


class AuditLogRead(ORMReadModel):
    id: str
    organization_id: str
    user_id: str | None = None
    action: str
    entity_type: str | None = None
    entity_id: str | None = None
    description: str | None = None
    payload: dict[str, Any]
    ts: datetime


class AuditLogPage(BaseModel):
    items: list[AuditLogRead]
    total: int
    limit: int
    offset: int


class PropertyCreate(BaseModel):
    address: str = PydanticField(min_length=1)
    city: str = PydanticField(min_length=1)
    state: str = PydanticField(min_length=2, max_length=2)
    zip_code: str = PydanticField(min_length=5)
    type: PropertyType
    bedrooms: int | None = PydanticField(default=None, ge=0)
    bathrooms: float | None = PydanticField(default=None, ge=0)
    square_feet: int | None = PydanticField(default=None, ge=0)
    purchase_price: float | None = PydanticField(default=None, ge=0)
    current_value: float | None = PydanticField(default=None, ge=0)
    mortgage: float | None = PydanticField(default=None, ge=0)


class PropertyUpdate(BaseModel):
    address: str | None = PydanticField(default=None, min_length=1)
    city: str | None = PydanticField(default=None, min_length=1)
    state: str | None = PydanticField(default=None, min_length=2, max_length=2)
    zip_code: str | None = PydanticField(default=None, min_length=5)
    type: PropertyType | None = None
    bedrooms: int | None = PydanticField(default=None, ge=0)
    bathrooms: float | None = PydanticField(default=None, ge=0)
    square_feet: int | None = PydanticField(default=None, ge=0)
    purchase_price: float | None = PydanticField(default=None, ge=0)
    current_value: float | None = PydanticField(default=None, ge=0)
    mortgage: float | None = PydanticField(default=None, ge=0)


class PropertyRead(ORMReadModel):
    id: str
    organization_id: str
    address: str
    city: str
    state: str
    zip_code: str
    type: PropertyType
    bedrooms: int | None = None
    bathrooms: float | None = None
    square_feet: int | None = None
    purchase_price: float | None = None
    current_value: float | None = None
    mortgage: float | None = None
    created_at: datetime


class PropertySummaryRead(PropertyRead):
    current_tenant: str | None = None
    current_rent: float | None = None
    is_occupied: bool = False
    expense_count: int = 0
    maintenance_count: int = 0


class PropertyPage(BaseModel):
    items: list[PropertySummaryRead]
    pagination: Page


class TenantCreate(BaseModel):
    first_name: str = PydanticField(min_length=1)
    last_name: str = PydanticField(min_length=1)
    email: str = PydanticField(min_length=3)
    phone: str = PydanticField(min_length=10)
    emergency_contact: str | None = None
    emergency_phone: str | None = None


class TenantUpdate(BaseModel):
    first_name: str | None = PydanticField(default=None, min_length=1)
    last_name: str | None = PydanticField(default=None, min_length=1)
    email: str | None = PydanticField(default=None, min_length=3)
    phone: str | None = PydanticField(default=None, min_length=10)
    emergency_contact: str | None = None
    emergency_phone: str | None = None


class TenantRead(ORMReadModel):
    id: str
    organization_id: str
    first_name: str
    last_name: str
    email: str
    phone: str
    emergency_contact: str | None = None
    emergency_phone: str | None = None
    created_at: datetime


class LeaseCreate(BaseModel):
    property_id: str
    tenant_id: str
    start_date: date
    end_date: date
    monthly_rent: float = PydanticField(ge=0)
    security_deposit: float | None = PydanticField(default=None, ge=0)
    status: LeaseStatus = LeaseStatus.ACTIVE
    terms: str | None = None


class LeaseUpdate(BaseModel):
    start_date: date | None = None
    end_date: date | None = None
    monthly_rent: float | None = PydanticField(default=None, ge=0)
    security_deposit: float | None = PydanticField(default=None, ge=0)
    status: LeaseStatus | None = None
    terms: str | None = None


class LeaseRead(ORMReadModel):
    id: str
    property_id: str
    tenant_id: str
    start_date: date
    end_date: date
    monthly_rent: float
    security_deposit: float | None = None
    status: LeaseStatus
    terms: str | None = None
    created_at: datetime


class PaymentCreate(BaseModel):
    amount: float = PydanticField(gt=0)
    due_date: date
    paid_date: date | None = None
    status: PaymentStatus = PaymentStatus.PENDING


class PaymentRead(ORMReadModel):
    id: str
    lease_id: str
    amount: float
    due_date: date
    paid_date: date | None = None
    status: PaymentStatus
    created_at: datetime


class ExpenseCreate(BaseModel):
    property_id: str
    description: str = PydanticField(min_length=1)
    amount: float = PydanticField(ge=0)
    category: str = PydanticField(min_length=1)
    expense_date: date


class ExpenseUpdate(BaseModel):
    description: str | None = PydanticField(default=None, min_length=1)
    amount: float | None = PydanticField(default=None, ge=0)
    category: str | None = PydanticField(default=None, min_length=1)
    expense_date: date | None = None


class ExpenseRead(ORMReadModel):
    id: str
    property_id: str
    description: str
    amount: float
    category: str
    expense_date: date
    created_at: datetime


class ExpensePage(BaseModel):
    items: list[ExpenseRead]
    pagination: Page


class MaintenanceTaskCreate(BaseModel):
    property_id: str
    title: str = PydanticField(min_length=1)
    description: str | None = None
    priority: MaintenancePriority = MaintenancePriority.MEDIUM
    status: MaintenanceStatus = MaintenanceStatus.PENDING
    due_date: date | None = None
    cost: float | None = PydanticField(default=None, ge=0)


class MaintenanceTaskUpdate(BaseModel):
    title: str | None = PydanticField(default=None, min_length=1)
    description: str | None = None
    priority: MaintenancePriority | None = None
    status: MaintenanceStatus | None = None
    due_date: date | None = None
    cost: float | None = PydanticField(default=None, ge=0)


class MaintenanceTaskRead(ORMReadModel):
    id: str
    property_id: str
    title: str
    description: str | None = None
    priority: MaintenancePriority
    status: MaintenanceStatus
    due_date: date | None = None
    cost: float | None = None
    created_at: datetime


class ReminderCreate(BaseModel):
    property_id: str | None = None
    lease_id: str | None = None
    title: str = PydanticField(min_length=1)
    description: str | None = None
    due_date: date


class ReminderRead(ORMReadModel):
    id: str
    property_id: str | None = None
    lease_id: str | None = None
    title: str
    description: str | None = None
    due_date: date
    is_completed: bool
    created_at: datetime


class PropertyPerformanceRead(BaseModel):
    id: str
    address: str
    city: str
    monthly_rent: float
    monthly_expenses: float
    net_income: float
    profit_margin: float


class DashboardOverviewRead(BaseModel):
    property_count: int
    active_lease_count: int
    monthly_rent_income: float
    monthly_expenses: float
    yearly_expenses: float
    monthly_net_income: float
    occupancy_rate: float
    pending_maintenance_count: int
    upcoming_reminders: list[ReminderRead]
    recent_expenses: list[ExpenseRead]
    property_performance: list[PropertyPerformanceRead]


class MonthlyFinancialRead(BaseModel):
    month: int
    month_name: str
    income: float
    expenses: float
    net_income: float


class FinancialTotalsRead(BaseModel):
    income: float
    expenses: float
    net_income: float


class FinancialSummaryRead(BaseModel):
    year: int
    monthly_data: list[MonthlyFinancialRead]
    totals: FinancialTotalsRead
