"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 1 free user and 2 pro users
  - 2 saved depots for the first pro user
  - 1 recent search in the legacy single-destination shape
"""

import asyncio

from sqlalchemy import text

from truckcheck.domain.enums import SubscriptionStatus
from truckcheck.infrastructure.database import async_session_factory, engine
from truckcheck.infrastructure.models import DepotModel, RecentSearchModel, UserModel


USERS = [
    {"name": "Casey Free", "email": "casey@example.com", "status": SubscriptionStatus.FREE},
    {"name": "Jordan Pro", "email": "jordan@example.com", "status": SubscriptionStatus.PRO},
    {"name": "Sam Pro", "email": "sam@example.com", "status": SubscriptionStatus.PRO},
]

DEPOTS = [
    {"address": "Main Yard - 1 Sunshine Ave, Laverton North VIC", "lat": -37.8136, "lng": 144.8031},
    {"address": "Northern Depot - 12 Hume Hwy, Campbellfield VIC", "lat": -37.6620, "lng": 144.9597},
]

LEGACY_SEARCH = {
    "base_location": {"placeName": "Melbourne VIC, Australia", "lat": -37.8136, "lng": 144.9631},
    "destination": {"placeName": "Geelong VIC, Australia", "lat": -38.1499, "lng": 144.3617},
    "distance": 64.2,
    "logbook_required": False,
}


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM users"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Users ─────────────────────────────────────────────────────
        user_models = []
        for u in USERS:
            m = UserModel(name=u["name"], email=u["email"], subscription_status=u["status"].value)
            session.add(m)
            user_models.append(m)
        await session.flush()
        print(f"  Created {len(user_models)} users")

        # ── Depots ────────────────────────────────────────────────────
        for d in DEPOTS:
            session.add(DepotModel(user_id=user_models[1].id, **d))
        await session.flush()
        print(f"  Created {len(DEPOTS)} depots")

        # ── Recent searches ───────────────────────────────────────────
        session.add(RecentSearchModel(user_id=user_models[1].id, **LEGACY_SEARCH))
        await session.flush()
        print("  Created 1 recent search")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
