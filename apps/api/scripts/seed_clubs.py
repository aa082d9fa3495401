"""
Seed Club Catalogue

Creates the initial set of unclaimed clubs so presidents can claim them.
Clubs that already exist (by name) are skipped, so the script is safe to
re-run.

Usage:
    cd apps/api
    python scripts/seed_clubs.py
"""

import asyncio
import sys
from pathlib import Path

# Add the src directory to the path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from app.core.config import settings
from app.modules.clubs import repository
from app.modules.clubs.models import ClubCategory
from app.modules.posts.models import Post  # noqa: F401 - needed for metadata resolution
from app.modules.users.models import User  # noqa: F401 - needed for relationship resolution

CLUBS = [
    {
        "name": "Robotics Club",
        "description": "Design, build and program robots for regional competitions.",
        "category": ClubCategory.TECHNOLOGY,
        "meeting_time": "Tuesdays 3:30 PM",
        "location": "Room 214",
        "tags": ["robotics", "engineering", "competition"],
    },
    {
        "name": "Debate Society",
        "description": "Practice parliamentary and Lincoln-Douglas debate.",
        "category": ClubCategory.ACADEMIC,
        "meeting_time": "Thursdays 3:15 PM",
        "location": "Library",
        "tags": ["debate", "public speaking"],
    },
    {
        "name": "Art Collective",
        "description": "Open studio time, gallery trips and the spring art show.",
        "category": ClubCategory.ARTS,
        "meeting_time": "Wednesdays 3:30 PM",
        "location": "Art Room",
        "tags": ["painting", "drawing"],
    },
    {
        "name": "Ultimate Frisbee",
        "description": "Casual pickup games and an intramural league.",
        "category": ClubCategory.SPORTS,
        "meeting_time": "Fridays 4:00 PM",
        "location": "North Field",
        "tags": ["frisbee", "outdoors"],
    },
    {
        "name": "Key Club",
        "description": "Volunteer projects with local organisations.",
        "category": ClubCategory.SERVICE,
        "meeting_time": "Mondays 7:30 AM",
        "location": "Room 101",
        "tags": ["volunteering", "community"],
    },
    {
        "name": "Chess Club",
        "description": "Weekly casual play, puzzles and tournament prep.",
        "category": ClubCategory.HOBBY,
        "meeting_time": "Wednesdays 12:15 PM",
        "location": "Room 305",
        "tags": ["chess", "strategy"],
    },
]


async def seed_clubs() -> None:
    """Create every catalogue club that doesn't exist yet."""

    # Create async engine and session
    engine = create_async_engine(settings.database_url, echo=False)
    async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    created = 0
    async with async_session() as db:
        for data in CLUBS:
            if await repository.get_club_by_name(db, data["name"]):
                print(f"Club already exists: {data['name']}")
                continue

            club = await repository.create_club(db, **data)
            created += 1
            print(f"Created club: {club.name}")
            print(f"  ID: {club.id}")
            print(f"  Category: {club.category.value}")

        await db.commit()

    print(f"Seeding complete, {created} new clubs.")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed_clubs())
