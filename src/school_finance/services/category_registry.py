"""Finance category registry with get-or-create for system categories."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from school_finance.database import conflict_insert
from school_finance.errors import NotFoundError, ValidationError
from school_finance.models import FinanceCategory, FinanceType, utcnow

logger = logging.getLogger(__name__)

BOOK_SALES_CATEGORY = (FinanceType.REVENUE, "Book Sales")
PAYROLL_CATEGORY = (FinanceType.EXPENSE, "Payroll")

_UPDATABLE_FIELDS = {"name", "parent_id", "is_active"}


class CategoryRegistry:
    """Service for the revenue/expense category taxonomy.

    Key invariants:
    1. (type, name) is unique (enforced by constraint)
    2. Categories are never hard-deleted; deactivation leaves history intact
    3. get_or_create tolerates a concurrent insert of the same category by
       falling back to a lookup
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, category_id: UUID) -> FinanceCategory:
        """Load a category or raise NotFoundError."""
        category = await self.session.get(FinanceCategory, category_id)
        if category is None:
            raise NotFoundError("Category", category_id)
        return category

    async def list(self, finance_type: FinanceType | str | None = None) -> list[FinanceCategory]:
        """Active categories ordered by type then name, with parents loaded."""
        query = (
            select(FinanceCategory)
            .where(FinanceCategory.is_active.is_(True))
            .options(selectinload(FinanceCategory.parent))
            .order_by(FinanceCategory.type, FinanceCategory.name)
        )
        if finance_type is not None:
            query = query.where(FinanceCategory.type == _coerce_type(finance_type))

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def create(
        self,
        finance_type: FinanceType | str,
        name: str,
        parent_id: UUID | None = None,
        is_active: bool = True,
    ) -> FinanceCategory:
        """Create a category explicitly (administrator path)."""
        type_value = _coerce_type(finance_type)
        name = _clean_name(name)

        if parent_id is not None:
            await self.get(parent_id)

        existing = await self._find(type_value, name, active_only=False)
        if existing is not None:
            raise ValidationError(
                f"Category '{name}' already exists for {type_value}",
                context={"type": type_value, "name": name},
            )

        category = FinanceCategory(
            type=type_value,
            name=name,
            parent_id=parent_id,
            is_active=is_active,
        )
        self.session.add(category)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise ValidationError(
                f"Category '{name}' already exists for {type_value}",
                context={"type": type_value, "name": name},
            ) from e

        logger.info("Created %s category %s (%s)", type_value, name, category.id)
        return await self._reload(category.id)

    async def update(self, category_id: UUID, changes: dict[str, Any]) -> FinanceCategory:
        """Rename, reparent or (de)activate a category.

        ``changes`` holds only the fields the caller supplied; ``parent_id``
        set to None clears the parent.
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update category fields: {', '.join(sorted(unknown))}")

        category = await self.get(category_id)

        if "name" in changes and changes["name"] is not None:
            name = _clean_name(changes["name"])
            if name != category.name:
                clash = await self._find(category.type, name, active_only=False)
                if clash is not None:
                    raise ValidationError(
                        f"Category '{name}' already exists for {category.type}",
                        context={"type": category.type, "name": name},
                    )
            category.name = name

        if "parent_id" in changes:
            parent_id = changes["parent_id"]
            if parent_id is not None:
                await self._ensure_not_cycle(category.id, parent_id)
            category.parent_id = parent_id

        if "is_active" in changes and changes["is_active"] is not None:
            category.is_active = bool(changes["is_active"])

        await self.session.flush()
        return await self._reload(category.id)

    async def get_or_create(self, finance_type: FinanceType | str, name: str) -> FinanceCategory:
        """Return the active (type, name) category, creating it if missing.

        The insert is ON CONFLICT DO NOTHING against the (type, name) unique
        constraint, so two first-time callers racing each other both end up
        with the same row. A conflicting inactive row is reactivated.
        """
        type_value = _coerce_type(finance_type)

        category = await self._find(type_value, name, active_only=True)
        if category is not None:
            return category

        inserted = await self._insert_ignoring_conflict(type_value, name)

        category = await self._find(type_value, name, active_only=False)
        if category is None:
            raise RuntimeError(f"Category get-or-create failed for {type_value}/{name}")

        if not category.is_active:
            category.is_active = True
            await self.session.flush()
            logger.warning("Reactivated deactivated system category %s/%s", type_value, name)
        elif inserted:
            logger.info("Provisioned system category %s/%s (%s)", type_value, name, category.id)

        return category

    async def _insert_ignoring_conflict(self, type_value: str, name: str) -> bool:
        """Insert a category row, treating a unique conflict as benign.

        Returns True if a row was inserted.
        """
        now = utcnow()
        values = {
            "id": uuid4(),
            "type": type_value,
            "name": name,
            "parent_id": None,
            "is_active": True,
            "created_at": now,
            "updated_at": now,
        }

        insert = conflict_insert(self.session, FinanceCategory)
        if insert is not None:
            stmt = insert.values(**values).on_conflict_do_nothing(index_elements=["type", "name"])
            result = await self.session.execute(stmt)
            return bool(result.rowcount)

        # Other backends: isolate the insert in a savepoint and retry as lookup
        try:
            async with self.session.begin_nested():
                self.session.add(FinanceCategory(**values))
            return True
        except IntegrityError:
            return False

    async def _find(
        self, type_value: str, name: str, active_only: bool
    ) -> FinanceCategory | None:
        query = select(FinanceCategory).where(
            FinanceCategory.type == type_value,
            FinanceCategory.name == name,
        )
        if active_only:
            query = query.where(FinanceCategory.is_active.is_(True))
        result = await self.session.execute(
            query.order_by(FinanceCategory.created_at).limit(1)
        )
        return result.scalar_one_or_none()

    async def _ensure_not_cycle(self, category_id: UUID, parent_id: UUID) -> None:
        """Reject reparenting a category onto itself or one of its descendants."""
        if parent_id == category_id:
            raise ValidationError("A category cannot be its own parent")

        seen: set[UUID] = set()
        current: UUID | None = parent_id
        while current is not None and current not in seen:
            seen.add(current)
            node = await self.get(current)
            if node.parent_id == category_id:
                raise ValidationError("Reparenting would create a category cycle")
            current = node.parent_id

    async def _reload(self, category_id: UUID) -> FinanceCategory:
        result = await self.session.execute(
            select(FinanceCategory)
            .where(FinanceCategory.id == category_id)
            .options(selectinload(FinanceCategory.parent))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()


def _coerce_type(value: FinanceType | str) -> str:
    try:
        return FinanceType(value).value
    except ValueError as e:
        raise ValidationError("Invalid type. Use REVENUE or EXPENSE") from e


def _clean_name(name: str) -> str:
    name = (name or "").strip()
    if not name or len(name) > 200:
        raise ValidationError("Category name must be 1-200 characters")
    return name
