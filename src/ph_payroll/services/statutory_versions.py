"""Resolution of the statutory version effective on a date."""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ph_payroll.calculators.engine import StatutoryVersionNotFoundError
from ph_payroll.calculators.types import StatutoryTables
from ph_payroll.models import BirBracketRow, SssBracketRow, StatutoryVersion

logger = logging.getLogger(__name__)


class StatutoryVersionResolver:
    """Loads statutory tables from the database.

    The latest published version whose window covers the date wins; drafts
    are never returned.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def resolve(self, as_of: date) -> StatutoryTables:
        """Tables effective on ``as_of``.

        Raises:
            StatutoryVersionNotFoundError: If no published version covers the date
        """
        result = await self.session.execute(
            select(StatutoryVersion)
            .where(
                StatutoryVersion.status == "PUBLISHED",
                StatutoryVersion.effective_from <= as_of,
                or_(StatutoryVersion.effective_to.is_(None), StatutoryVersion.effective_to >= as_of),
            )
            .order_by(StatutoryVersion.effective_from.desc())
            .options(selectinload(StatutoryVersion.tax_rows), selectinload(StatutoryVersion.sss_rows))
            .limit(1)
        )
        version = result.scalar_one_or_none()
        if version is None:
            raise StatutoryVersionNotFoundError(as_of)
        logger.debug("Resolved statutory version %s for %s", version.version_id, as_of)
        return self.to_tables(version)

    @staticmethod
    def to_tables(version: StatutoryVersion) -> StatutoryTables:
        return StatutoryTables(
            version_id=version.version_id,
            status=version.status,
            effective_from=version.effective_from,
            effective_to=version.effective_to,
            tax_brackets=[r.to_bracket() for r in version.tax_rows] if version.has_tax_table else None,
            sss_brackets=[r.to_bracket() for r in version.sss_rows] if version.has_sss_table else None,
        )

    async def save(self, tables: StatutoryTables) -> StatutoryVersion:
        """Insert a version and its rows; absent tables are recorded as such."""
        version = StatutoryVersion(
            version_id=tables.version_id,
            status=(tables.status or "DRAFT").upper(),
            effective_from=tables.effective_from or date.min,
            effective_to=tables.effective_to,
            has_tax_table=tables.tax_brackets is not None,
            has_sss_table=tables.sss_brackets is not None,
        )
        version.tax_rows = [
            BirBracketRow.from_bracket(b, row_order=i) for i, b in enumerate(tables.tax_brackets or [])
        ]
        version.sss_rows = [SssBracketRow.from_bracket(b) for b in tables.sss_brackets or []]
        self.session.add(version)
        await self.session.flush()
        return version
