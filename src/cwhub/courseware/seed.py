"""Demo seed data: two accounts and twenty coursewares (first ten free)."""

from __future__ import annotations

import logging
import random
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cwhub.auth.password import hash_password
from cwhub.db.models import Courseware, User
from cwhub.payments.entitlement import grant_premium

logger = logging.getLogger(__name__)

CATEGORIES = ["Mathematics", "Language", "English", "Science", "History"]
LEVELS = ["Basics", "Intermediate", "Advanced", "Focus", "Review"]

DEMO_USERS: list[dict] = [
    {"username": "admin", "password": "admin123", "premium": True},
    {"username": "user", "password": "user123", "premium": False},
]


def demo_coursewares(rng: random.Random | None = None) -> list[dict]:
    """Catalogue rows: numbers 1-10 are free, 11-20 cost 10-59."""
    rng = rng or random.Random(20)
    rows = []
    for i in range(1, 21):
        category = CATEGORIES[i % 5]
        is_free = i <= 10
        rows.append(
            {
                "title": f"Courseware {i}: {category} {LEVELS[(i - 1) % 5]}",
                "description": f"Courseware number {i}, with worked examples for {category}.",
                "thumbnail": f"/public/images/thumbnail{i}.jpg",
                "content_path": f"/coursewares/course{i}.html",
                "is_free": is_free,
                "price": Decimal("0") if is_free else Decimal(rng.randint(10, 59)),
                "category": category,
            }
        )
    return rows


async def seed_demo_data(db: AsyncSession) -> None:
    """Insert demo users and coursewares. Idempotent: existing rows are left alone."""
    for account in DEMO_USERS:
        existing = (await db.execute(select(User).where(User.username == account["username"]))).scalar_one_or_none()
        if existing is None:
            existing = User(username=account["username"], password_hash=hash_password(account["password"]))
            db.add(existing)
            await db.flush()
            logger.info("demo_user_seeded: %s", account["username"])
        if account["premium"]:
            await grant_premium(db, existing.id)

    count = (await db.execute(select(func.count()).select_from(Courseware))).scalar_one()
    if count == 0:
        for row in demo_coursewares():
            db.add(Courseware(**row))
        logger.info("demo_coursewares_seeded: %d", 20)

    await db.commit()
