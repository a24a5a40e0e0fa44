"""Seed the achievement catalog with the built-in RuneQuest achievements.

Existing entries (matched by ID or name) are left untouched, so the script
can be re-run safely.

    FIREBASE_CREDENTIALS=service-account.json python seed_achievements.py
"""

import logging

from app.db.achievement_catalog import get_achievement_catalog
from app.services.achievement_service import default_achievements

logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)-8s | %(message)s")
logger = logging.getLogger(__name__)


def seed() -> int:
    catalog = get_achievement_catalog()
    created = 0
    for achievement in default_achievements():
        try:
            catalog.create(achievement)
            created += 1
        except ValueError:
            logger.info("Skipping %s (already in catalog)", achievement.id)
    return created


if __name__ == "__main__":
    count = seed()
    logger.info("%d achievements inserted", count)
