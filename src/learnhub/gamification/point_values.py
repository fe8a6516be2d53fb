"""Persisted point-rate configuration."""

from __future__ import annotations

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from learnhub.db.models import RewardPointValues
from learnhub.gamification.exceptions import PersistenceFailure
from learnhub.gamification.points import PointValues

logger = structlog.get_logger()

_SINGLETON_ID = 1


class PointValuesStore:
    """Holds the active ``PointValues`` and swaps it wholesale on update."""

    def __init__(self, defaults: PointValues) -> None:
        self.defaults = defaults
        self._current = defaults

    @property
    def current(self) -> PointValues:
        return self._current

    async def load(self, db: AsyncSession) -> PointValues:
        """Load persisted rates, falling back to the configured defaults."""
        result = await db.execute(
            select(RewardPointValues).where(RewardPointValues.id == _SINGLETON_ID)
        )
        row = result.scalar_one_or_none()
        if row is None:
            self._current = self.defaults
        else:
            self._current = PointValues.model_validate(
                {name: getattr(row, name) for name in PointValues.model_fields}
            )
        return self._current

    async def update(self, db: AsyncSession, changes: dict[str, float]) -> PointValues:
        """Persist a partial update and make it the active configuration.

        Raises ValueError for unknown or invalid rates.
        """
        new_values = self._current.merged(changes)

        try:
            row = await db.get(RewardPointValues, _SINGLETON_ID)
            if row is None:
                row = RewardPointValues(id=_SINGLETON_ID)
                db.add(row)
            for name, value in new_values.model_dump().items():
                setattr(row, name, value)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            msg = "Failed to persist point values"
            raise PersistenceFailure(msg) from e

        self._current = new_values
        logger.info("point_values_updated", changes=changes)
        return new_values
