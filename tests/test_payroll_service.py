"""Tests for monthly teacher payroll."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_finance.errors import InvalidStateError, NotFoundError, ValidationError
from school_finance.models import FinanceCategory, FinanceTransaction, Payroll, User
from school_finance.services.category_registry import CategoryRegistry
from school_finance.services.ledger_service import LedgerService
from school_finance.services.payroll_service import PayrollService

MAY = date(2024, 5, 1)


async def _payroll_entries(session: AsyncSession, payroll_id) -> list[FinanceTransaction]:
    result = await session.execute(
        select(FinanceTransaction).where(
            FinanceTransaction.reference_type == "PAYROLL",
            FinanceTransaction.reference_id == payroll_id,
        )
    )
    return list(result.scalars().all())


@pytest.fixture
async def draft(session, admin_user, teachers) -> Payroll:
    """A generated DRAFT payroll for the first teacher."""
    service = PayrollService(session)
    await service.generate(MAY, created_by_user_id=admin_user.id)
    rows = await service.list(MAY)
    return next(p for p in rows if p.teacher_user_id == teachers[0].id)


class TestGenerate:
    """Bulk creation per month."""

    async def test_generate_for_active_teachers(self, session, admin_user, teachers):
        result = await PayrollService(session).generate(MAY, created_by_user_id=admin_user.id)

        assert result.month == "2024-05"
        assert result.created == 3
        assert {p.teacher_user_id for p in result.payrolls} == {t.id for t in teachers}

        rows = await PayrollService(session).list(MAY)
        assert len(rows) == 3
        for row in rows:
            assert row.status == "DRAFT"
            assert row.net_pay == Decimal("0")
            assert row.base_salary == Decimal("0")
            assert row.currency == "MMK"
            assert row.period_month == MAY

    async def test_generate_is_idempotent(self, session, admin_user, teachers):
        service = PayrollService(session)
        await service.generate(MAY, created_by_user_id=admin_user.id)

        again = await service.generate(MAY, created_by_user_id=admin_user.id)

        assert again.created == 0
        assert again.payrolls == []
        assert len(await service.list(MAY)) == 3

    async def test_generate_fills_only_missing_teachers(self, session, admin_user, teachers):
        service = PayrollService(session)
        await service.generate(MAY, created_by_user_id=admin_user.id)
        newcomer = User(
            id=uuid4(),
            first_name="New",
            last_name="Hire",
            email="new.hire@school.test",
            role="teacher",
            status="active",
        )
        session.add(newcomer)
        await session.flush()

        result = await service.generate(MAY, created_by_user_id=admin_user.id)

        assert result.created == 1
        assert result.payrolls[0].teacher_user_id == newcomer.id

    async def test_months_are_independent(self, session, admin_user, teachers):
        service = PayrollService(session)
        await service.generate(MAY, created_by_user_id=admin_user.id)

        june = await service.generate(date(2024, 6, 1), created_by_user_id=admin_user.id)

        assert june.created == 3

    async def test_list_orders_by_teacher_last_name(self, session, admin_user, teachers):
        service = PayrollService(session)
        await service.generate(MAY, created_by_user_id=admin_user.id)

        rows = await service.list(MAY)

        assert [p.teacher_user.last_name for p in rows] == ["Aye", "Lwin", "Thein"]


class TestUpdate:
    """Editing amounts and confirming."""

    async def test_net_pay_recomputed(self, session, draft):
        payroll = await PayrollService(session).update(
            draft.id,
            {"base_salary": Decimal("500000"), "bonus": Decimal("50000"), "deduction": Decimal("20000")},
        )

        assert payroll.net_pay == Decimal("530000")

    async def test_partial_update_uses_stored_amounts(self, session, draft):
        service = PayrollService(session)
        await service.update(draft.id, {"base_salary": Decimal("300000")})

        payroll = await service.update(draft.id, {"deduction": Decimal("50000")})

        assert payroll.net_pay == Decimal("250000")

    async def test_net_pay_floored_at_zero(self, session, draft):
        payroll = await PayrollService(session).update(
            draft.id, {"base_salary": Decimal("100"), "deduction": Decimal("1000")}
        )

        assert payroll.net_pay == Decimal("0")

    async def test_negative_amount_rejected(self, session, draft):
        with pytest.raises(ValidationError):
            await PayrollService(session).update(draft.id, {"bonus": Decimal("-1")})

    async def test_confirm(self, session, draft):
        payroll = await PayrollService(session).update(draft.id, {"status": "CONFIRMED"})

        assert payroll.status == "CONFIRMED"

    async def test_cannot_move_backwards(self, session, draft):
        service = PayrollService(session)
        await service.update(draft.id, {"status": "CONFIRMED"})

        with pytest.raises(InvalidStateError):
            await service.update(draft.id, {"status": "DRAFT"})

    async def test_update_cannot_set_paid(self, session, draft):
        with pytest.raises(InvalidStateError):
            await PayrollService(session).update(draft.id, {"status": "PAID"})

    async def test_unknown_payroll_is_not_found(self, session):
        with pytest.raises(NotFoundError):
            await PayrollService(session).update(uuid4(), {"bonus": Decimal("1")})


class TestPay:
    """Paying and the linked expense."""

    async def test_pay_records_expense(self, session, admin_user, draft):
        service = PayrollService(session)
        await service.update(
            draft.id,
            {"base_salary": Decimal("500000"), "bonus": Decimal("50000"), "deduction": Decimal("20000")},
        )

        paid = await service.pay(draft.id, "BANK", admin_user.id)

        assert paid.status == "PAID"
        assert paid.paid_at is not None
        assert paid.payment_method == "BANK"

        [tx] = await _payroll_entries(session, draft.id)
        assert tx.type == "EXPENSE"
        assert tx.amount == Decimal("530000")
        assert tx.payment_method == "BANK"
        assert tx.currency == "MMK"
        assert tx.occurred_at == paid.paid_at
        category = await session.get(FinanceCategory, tx.category_id)
        assert (category.type, category.name) == ("EXPENSE", "Payroll")

    async def test_pay_from_confirmed(self, session, admin_user, draft):
        service = PayrollService(session)
        await service.update(draft.id, {"status": "CONFIRMED"})

        paid = await service.pay(draft.id, "CASH", admin_user.id)

        assert paid.status == "PAID"

    async def test_second_pay_fails(self, session, admin_user, draft):
        service = PayrollService(session)
        await service.pay(draft.id, "BANK", admin_user.id)

        with pytest.raises(InvalidStateError, match="already paid"):
            await service.pay(draft.id, "BANK", admin_user.id)

        assert len(await _payroll_entries(session, draft.id)) == 1

    async def test_paid_payroll_is_frozen(self, session, admin_user, draft):
        service = PayrollService(session)
        await service.pay(draft.id, "BANK", admin_user.id)

        with pytest.raises(InvalidStateError, match="already paid"):
            await service.update(draft.id, {"bonus": Decimal("1000")})

    async def test_pay_reuses_inactive_payroll_category(self, session, admin_user, draft):
        existing = await CategoryRegistry(session).create("EXPENSE", "Payroll", is_active=False)

        await PayrollService(session).pay(draft.id, "BANK", admin_user.id)

        [tx] = await _payroll_entries(session, draft.id)
        assert tx.category_id == existing.id

    async def test_failed_ledger_write_leaves_payroll_unpaid(
        self, session, admin_user, draft, monkeypatch
    ):
        """The status change rolls back with the expense entry."""

        async def fail(*args, **kwargs):
            raise RuntimeError("ledger unavailable")

        monkeypatch.setattr(LedgerService, "record_linked", fail)

        with pytest.raises(RuntimeError):
            await PayrollService(session).pay(draft.id, "BANK", admin_user.id)

        row = (
            await session.execute(
                select(Payroll.status, Payroll.paid_at, Payroll.payment_method).where(
                    Payroll.id == draft.id
                )
            )
        ).one()
        assert tuple(row) == ("DRAFT", None, None)
        assert await _payroll_entries(session, draft.id) == []
        categories = await session.scalars(
            select(FinanceCategory).where(FinanceCategory.name == "Payroll")
        )
        assert categories.all() == []

        monkeypatch.undo()
        paid = await PayrollService(session).pay(draft.id, "BANK", admin_user.id)
        assert paid.status == "PAID"
        assert len(await _payroll_entries(session, draft.id)) == 1

    async def test_invalid_payment_method(self, session, admin_user, draft):
        with pytest.raises(ValidationError):
            await PayrollService(session).pay(draft.id, "CHEQUE", admin_user.id)
