"""Payroll service - monthly teacher pay and its ledger expense."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from school_finance.config import get_settings
from school_finance.database import conflict_insert, unit_of_work
from school_finance.errors import NotFoundError, ValidationError
from school_finance.models import (
    PaymentMethod,
    Payroll,
    PayrollStatus,
    ReferenceType,
    User,
    utcnow,
)
from school_finance.services.calculations import ZERO, compute_net_pay, to_decimal
from school_finance.services.category_registry import PAYROLL_CATEGORY, CategoryRegistry
from school_finance.services.ledger_service import LedgerService
from school_finance.services.periods import first_of_month, format_month
from school_finance.services.state_machine import PayrollStateMachine

logger = logging.getLogger(__name__)

_MONEY_FIELDS = ("base_salary", "bonus", "deduction")
_UPDATABLE_FIELDS = {*_MONEY_FIELDS, "status"}


@dataclass
class GeneratedPayroll:
    """A row created by generate."""

    id: UUID
    teacher_user_id: UUID


@dataclass
class GenerateResult:
    """Outcome of generating a month's payroll."""

    month: str
    created: int
    payrolls: list[GeneratedPayroll] = field(default_factory=list)


class PayrollService:
    """Service for monthly teacher payroll.

    Lifecycle: DRAFT -> CONFIRMED -> PAID. Amounts are editable until PAID;
    paying writes the linked EXPENSE entry and cannot be undone.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.categories = CategoryRegistry(session)
        self.ledger = LedgerService(session)

    async def get(self, payroll_id: UUID) -> Payroll:
        """Load a payroll row with teacher and creator."""
        result = await self.session.execute(
            select(Payroll)
            .where(Payroll.id == payroll_id)
            .options(
                selectinload(Payroll.teacher_user),
                selectinload(Payroll.created_by_user),
            )
            .execution_options(populate_existing=True)
        )
        payroll = result.scalar_one_or_none()
        if payroll is None:
            raise NotFoundError("Payroll", payroll_id)
        return payroll

    async def list(self, month: date) -> list[Payroll]:
        """Payroll rows for a month, ordered by teacher last name."""
        result = await self.session.execute(
            select(Payroll)
            .join(User, Payroll.teacher_user_id == User.id)
            .where(Payroll.period_month == first_of_month(month))
            .options(
                selectinload(Payroll.teacher_user),
                selectinload(Payroll.created_by_user),
            )
            .order_by(User.last_name, User.first_name)
        )
        return list(result.scalars().all())

    async def generate(self, month: date, created_by_user_id: UUID) -> GenerateResult:
        """Create a DRAFT row for every active teacher lacking one for month.

        Idempotent: the (teacher, month) unique constraint turns a second
        insert for the same pair into a no-op.
        """
        period = first_of_month(month)
        settings = get_settings()

        async with unit_of_work(self.session):
            teachers = await self.session.scalars(
                select(User.id)
                .where(User.role == settings.teacher_role, User.status == "active")
                .order_by(User.last_name, User.first_name)
            )
            existing = set(
                await self.session.scalars(
                    select(Payroll.teacher_user_id).where(Payroll.period_month == period)
                )
            )

            created: list[GeneratedPayroll] = []
            for teacher_id in teachers.all():
                if teacher_id in existing:
                    continue
                payroll_id = await self._insert_draft(
                    teacher_id, period, settings.default_currency, created_by_user_id
                )
                if payroll_id is not None:
                    created.append(GeneratedPayroll(id=payroll_id, teacher_user_id=teacher_id))

        logger.info(
            "Generated payroll for %s: %d created", format_month(period), len(created)
        )
        return GenerateResult(month=format_month(period), created=len(created), payrolls=created)

    async def update(self, payroll_id: UUID, changes: dict[str, Any]) -> Payroll:
        """Edit amounts or confirm a payroll that is not yet paid."""
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update payroll fields: {', '.join(sorted(unknown))}")

        payroll = await self.get(payroll_id)
        PayrollStateMachine.ensure_mutable(payroll.status)

        amounts: dict[str, Decimal] = {}
        for name in _MONEY_FIELDS:
            if changes.get(name) is None:
                continue
            value = to_decimal(changes[name], name.replace("_", " "))
            if value < ZERO:
                raise ValidationError(f"{name.replace('_', ' ').capitalize()} must not be negative")
            amounts[name] = value

        status = None
        if changes.get("status") is not None:
            try:
                status = PayrollStatus(changes["status"]).value
            except ValueError as e:
                raise ValidationError(f"Invalid status: {changes['status']!r}") from e
            PayrollStateMachine.validate_update_status(payroll.status, status)

        for name, value in amounts.items():
            setattr(payroll, name, value)
        if amounts:
            payroll.net_pay = compute_net_pay(
                to_decimal(payroll.base_salary),
                to_decimal(payroll.bonus),
                to_decimal(payroll.deduction),
            )
        if status is not None:
            payroll.status = status

        await self.session.flush()
        return await self.get(payroll.id)

    async def pay(
        self,
        payroll_id: UUID,
        payment_method: PaymentMethod | str,
        paid_by_user_id: UUID,
    ) -> Payroll:
        """Mark a payroll PAID and record its EXPENSE entry atomically."""
        try:
            method = PaymentMethod(payment_method).value
        except ValueError as e:
            raise ValidationError(f"Invalid payment method: {payment_method!r}") from e

        payroll = await self.get(payroll_id)
        PayrollStateMachine.ensure_payable(payroll.status)

        async with unit_of_work(self.session):
            paid_at = utcnow()
            payroll.status = PayrollStatus.PAID.value
            payroll.paid_at = paid_at
            payroll.payment_method = method
            await self.session.flush()

            category = await self.categories.get_or_create(*PAYROLL_CATEGORY)
            await self.ledger.record_linked(
                reference_type=ReferenceType.PAYROLL,
                reference_id=payroll.id,
                category=category,
                finance_type=PAYROLL_CATEGORY[0],
                amount=to_decimal(payroll.net_pay),
                payment_method=method,
                currency=payroll.currency,
                occurred_at=paid_at,
                created_by_user_id=paid_by_user_id,
            )

        logger.info(
            "Paid payroll %s net_pay=%s via %s", payroll.id, payroll.net_pay, method
        )
        return await self.get(payroll.id)

    async def _insert_draft(
        self,
        teacher_id: UUID,
        period: date,
        currency: str,
        created_by_user_id: UUID,
    ) -> UUID | None:
        """Insert one DRAFT row; returns its id, or None if it already existed."""
        now = utcnow()
        values = {
            "id": uuid4(),
            "teacher_user_id": teacher_id,
            "period_month": period,
            "base_salary": ZERO,
            "bonus": ZERO,
            "deduction": ZERO,
            "net_pay": ZERO,
            "status": PayrollStatus.DRAFT.value,
            "currency": currency,
            "created_by_user_id": created_by_user_id,
            "created_at": now,
            "updated_at": now,
        }

        insert = conflict_insert(self.session, Payroll)
        if insert is not None:
            result = await self.session.execute(
                insert.values(**values).on_conflict_do_nothing(
                    index_elements=["teacher_user_id", "period_month"]
                )
            )
            return values["id"] if result.rowcount else None

        try:
            async with self.session.begin_nested():
                self.session.add(Payroll(**values))
            return values["id"]
        except IntegrityError:
            return None
