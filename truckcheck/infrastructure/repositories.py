"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Every query is scoped to ``user_id`` so one
account can never read or delete another account's rows.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import CalculationModel, DepotModel, RecentSearchModel, UserModel
from truckcheck.domain.enums import SubscriptionStatus
from truckcheck.domain.records import SearchRecord, normalize_search_record


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: int) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)

    async def is_pro(self, user_id: int) -> bool:
        user = await self.get_by_id(user_id)
        return user is not None and user.subscription_status == SubscriptionStatus.PRO.value


class CalculationRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def save(self, user_id: int, record: dict[str, Any]) -> CalculationModel:
        row = CalculationModel(
            user_id=user_id,
            base_location=record["base_location"],
            stops=record["stops"],
            distance=record["distance"],
            driving_distance=record.get("driving_distance"),
            max_distance_from_base=record.get("max_distance_from_base"),
            logbook_required=record["logbook_required"],
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def list_for_user(
        self, user_id: int, retention_days: int = 90
    ) -> list[CalculationModel]:
        cutoff = datetime.now(timezone.utc) - timedelta(days=retention_days)
        result = await self.session.execute(
            select(CalculationModel)
            .where(
                CalculationModel.user_id == user_id,
                CalculationModel.created_at >= cutoff,
            )
            .order_by(CalculationModel.created_at.desc(), CalculationModel.id.desc())
        )
        return list(result.scalars().all())


class RecentSearchRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _to_record(row: RecentSearchModel) -> SearchRecord:
        return normalize_search_record(
            {
                "id": row.id,
                "base_location": row.base_location,
                "stops": row.stops,
                "destination": row.destination,
                "distance": row.distance,
                "logbook_required": row.logbook_required,
                "created_at": row.created_at,
            }
        )

    async def save(self, user_id: int, record: dict[str, Any]) -> RecentSearchModel:
        row = RecentSearchModel(
            user_id=user_id,
            base_location=record["base_location"],
            stops=record["stops"],
            distance=record["distance"],
            logbook_required=record["logbook_required"],
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def get(self, user_id: int, search_id: int) -> Optional[SearchRecord]:
        result = await self.session.execute(
            select(RecentSearchModel).where(
                RecentSearchModel.id == search_id,
                RecentSearchModel.user_id == user_id,
            )
        )
        row = result.scalar_one_or_none()
        return self._to_record(row) if row else None

    async def list_for_user(self, user_id: int, limit: int = 20) -> list[SearchRecord]:
        result = await self.session.execute(
            select(RecentSearchModel)
            .where(RecentSearchModel.user_id == user_id)
            .order_by(RecentSearchModel.created_at.desc(), RecentSearchModel.id.desc())
            .limit(limit)
        )
        return [self._to_record(row) for row in result.scalars().all()]

    async def delete(self, user_id: int, search_id: int) -> bool:
        result = await self.session.execute(
            delete(RecentSearchModel).where(
                RecentSearchModel.id == search_id,
                RecentSearchModel.user_id == user_id,
            )
        )
        return result.rowcount > 0

    async def clear(self, user_id: int) -> int:
        result = await self.session.execute(
            delete(RecentSearchModel).where(RecentSearchModel.user_id == user_id)
        )
        return result.rowcount


class DepotRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_for_user(self, user_id: int) -> list[DepotModel]:
        result = await self.session.execute(
            select(DepotModel)
            .where(DepotModel.user_id == user_id)
            .order_by(DepotModel.created_at.desc(), DepotModel.id.desc())
        )
        return list(result.scalars().all())

    async def save(
        self,
        user_id: int,
        *,
        address: str,
        lat: float,
        lng: float,
        name: Optional[str] = None,
    ) -> DepotModel:
        depot = DepotModel(
            user_id=user_id,
            address=f"{name} - {address}" if name else address,
            lat=lat,
            lng=lng,
        )
        self.session.add(depot)
        await self.session.flush()
        await self.session.refresh(depot)  # load server-side timestamps
        return depot

    async def delete(self, user_id: int, depot_id: int) -> bool:
        result = await self.session.execute(
            delete(DepotModel).where(
                DepotModel.id == depot_id, DepotModel.user_id == user_id
            )
        )
        return result.rowcount > 0
