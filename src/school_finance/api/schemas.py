"""Pydantic schemas for API request/response models.

Fields are snake_case in Python and camelCase on the wire.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from school_finance.models.enums import Currency, FinanceType, PaymentMethod, PayrollStatus, ReferenceType


class CamelModel(BaseModel):
    """Base schema with camelCase aliases."""

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ============================================================================
# Shared fragments
# ============================================================================


class UserSummary(CamelModel):
    """Identity of a creator or teacher."""

    id: UUID
    first_name: str
    last_name: str
    email: str | None = None


class CategoryRef(CamelModel):
    """Category label embedded in other resources."""

    id: UUID
    name: str
    type: str | None = None


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    code: str | None = None


class DeletedResponse(BaseModel):
    """Soft-delete acknowledgement."""

    id: UUID
    deleted: bool = True


class DeactivatedResponse(BaseModel):
    """Deactivation acknowledgement."""

    id: UUID
    deactivated: bool = True


# ============================================================================
# Category schemas
# ============================================================================


class CategoryCreate(CamelModel):
    """Schema for creating a category."""

    type: FinanceType
    name: str = Field(min_length=1, max_length=200)
    parent_id: UUID | None = None
    is_active: bool = True


class CategoryUpdate(CamelModel):
    """Schema for patching a category. Only supplied fields change."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    parent_id: UUID | None = None
    is_active: bool | None = None


class CategoryResponse(CamelModel):
    """Schema for category response."""

    id: UUID
    type: str
    name: str
    parent_id: UUID | None = None
    parent: CategoryRef | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Transaction schemas
# ============================================================================


class TransactionCreate(CamelModel):
    """Schema for a manual ledger entry."""

    type: FinanceType
    category_id: UUID
    amount: Decimal
    currency: Currency | None = None
    payment_method: PaymentMethod
    occurred_at: datetime
    note: str | None = Field(default=None, max_length=2000)
    reference_type: ReferenceType | None = None
    reference_id: UUID | None = None


class TransactionUpdate(CamelModel):
    """Schema for patching a ledger entry. ``type`` is not accepted."""

    model_config = ConfigDict(extra="forbid")

    category_id: UUID | None = None
    amount: Decimal | None = None
    currency: Currency | None = None
    payment_method: PaymentMethod | None = None
    occurred_at: datetime | None = None
    note: str | None = Field(default=None, max_length=2000)
    reference_type: ReferenceType | None = None
    reference_id: UUID | None = None


class TransactionResponse(CamelModel):
    """Schema for ledger entry response."""

    id: UUID
    type: str
    category_id: UUID
    category: CategoryRef | None = None
    amount: Decimal
    currency: str
    payment_method: str
    occurred_at: datetime
    note: str | None = None
    reference_type: str | None = None
    reference_id: UUID | None = None
    created_by_user_id: UUID
    created_by_user: UserSummary | None = None
    created_at: datetime
    updated_at: datetime


class Pagination(CamelModel):
    """Page metadata."""

    page: int
    page_size: int
    total: int
    total_pages: int


class TransactionListResponse(CamelModel):
    """Schema for listing ledger entries."""

    items: list[TransactionResponse]
    pagination: Pagination


# ============================================================================
# Report schemas
# ============================================================================


class CategoryTotalResponse(CamelModel):
    category_id: UUID
    name: str
    type: str
    total: Decimal


class PaymentMethodTotalResponse(CamelModel):
    payment_method: str
    total_revenue: Decimal
    total_expense: Decimal


class ReportResponse(CamelModel):
    """Summary figures and breakdowns for a period."""

    total_revenue: Decimal
    total_expense: Decimal
    total_payroll: Decimal
    net: Decimal
    by_category: list[CategoryTotalResponse]
    by_payment_method: list[PaymentMethodTotalResponse]


# ============================================================================
# Book schemas
# ============================================================================


class BookCreate(CamelModel):
    """Schema for adding a book to the catalogue."""

    title: str = Field(min_length=1, max_length=500)
    sku: str | None = Field(default=None, max_length=100)
    sale_price: Decimal = Field(ge=0)
    cost_price: Decimal | None = Field(default=None, ge=0)
    is_active: bool = True


class BookUpdate(CamelModel):
    """Schema for patching a book. ``costPrice: null`` clears the cost."""

    title: str | None = Field(default=None, min_length=1, max_length=500)
    sku: str | None = Field(default=None, max_length=100)
    sale_price: Decimal | None = Field(default=None, ge=0)
    cost_price: Decimal | None = Field(default=None, ge=0)
    is_active: bool | None = None


class BookResponse(CamelModel):
    """Schema for book response."""

    id: UUID
    title: str
    sku: str | None = None
    sale_price: Decimal
    cost_price: Decimal | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class BookRef(CamelModel):
    id: UUID
    title: str


# ============================================================================
# Book sale schemas
# ============================================================================


class SaleItemCreate(CamelModel):
    """A sale line on create."""

    book_id: UUID
    qty: int
    unit_price: Decimal


class SaleItemUpsert(SaleItemCreate):
    """A sale line on update; ``id`` selects an existing line."""

    id: UUID | None = None


class BookSaleCreate(CamelModel):
    """Schema for recording a sale."""

    sold_at: datetime
    customer_name: str | None = Field(default=None, max_length=200)
    payment_method: PaymentMethod
    currency: Currency | None = None
    items: list[SaleItemCreate]


class BookSaleUpdate(CamelModel):
    """Schema for correcting a sale. The item list replaces the current one."""

    sold_at: datetime | None = None
    customer_name: str | None = Field(default=None, max_length=200)
    payment_method: PaymentMethod | None = None
    currency: Currency | None = None
    items: list[SaleItemUpsert]


class BookSaleItemResponse(CamelModel):
    """A sale line with its book title and line total."""

    id: UUID
    book_id: UUID
    book: BookRef | None = None
    qty: int
    unit_price: Decimal
    line_total: Decimal


class BookSaleResponse(CamelModel):
    """Schema for book sale response."""

    id: UUID
    sold_at: datetime
    customer_name: str | None = None
    payment_method: str
    currency: str
    total_amount: Decimal
    profit_amount: Decimal | None = None
    created_by_user_id: UUID
    created_by_user: UserSummary | None = None
    items: list[BookSaleItemResponse]
    created_at: datetime
    updated_at: datetime


class BookSaleWriteResponse(CamelModel):
    """A written sale plus the missing-cost warning."""

    sale: BookSaleResponse
    cost_price_missing_warning: bool


# ============================================================================
# Payroll schemas
# ============================================================================


class PayrollUpdate(CamelModel):
    """Schema for editing payroll amounts or confirming it."""

    base_salary: Decimal | None = None
    bonus: Decimal | None = None
    deduction: Decimal | None = None
    status: PayrollStatus | None = None


class PayrollPay(CamelModel):
    """Schema for paying a payroll."""

    payment_method: PaymentMethod


class PayrollResponse(CamelModel):
    """Schema for payroll response."""

    id: UUID
    teacher_user_id: UUID
    teacher_user: UserSummary | None = None
    period_month: date
    base_salary: Decimal
    bonus: Decimal
    deduction: Decimal
    net_pay: Decimal
    status: str
    paid_at: datetime | None = None
    payment_method: str | None = None
    currency: str
    created_by_user_id: UUID
    created_by_user: UserSummary | None = None
    created_at: datetime
    updated_at: datetime


class GeneratedPayrollResponse(CamelModel):
    id: UUID
    teacher_user_id: UUID


class PayrollGenerateResponse(CamelModel):
    """Outcome of generating a month's payroll."""

    month: str
    created: int
    payrolls: list[GeneratedPayrollResponse]
