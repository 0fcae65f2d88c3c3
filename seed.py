"""
seed.py
───────
Creates the tables and seeds a default admin, a default teacher with class
subscriptions, and a starter rule table. Safe to run more than once:

    python seed.py

Reads DATABASE_URL from .env. Override SEED_* values there.
"""
import asyncio
import os
from datetime import date
from dotenv import load_dotenv

load_dotenv()

# ── Change these in .env or edit here ────────────────────────────────
ADMIN_EMAIL      = os.getenv("SEED_ADMIN_EMAIL",      "admin@capms.com")
ADMIN_PASSWORD   = os.getenv("SEED_ADMIN_PASSWORD",   "admin123")
TEACHER_EMAIL    = os.getenv("SEED_TEACHER_EMAIL",    "teacher@capms.com")
TEACHER_PASSWORD = os.getenv("SEED_TEACHER_PASSWORD", "teacher123")
# ─────────────────────────────────────────────────────────────────────

TEACHER_CLASSES = [("CS", "S5", "A"), ("CS", "S5", "B"), ("CS", "S6", "A")]

# (activity_type, level, position, points)
DEFAULT_RULES = [
    ("sports", "college", "first", 10),
    ("sports", "college", "any", 5),
    ("sports", "state", "first", 20),
    ("sports", "state", "any", 10),
    ("sports", "national", "any", 20),
    ("cultural", "college", "any", 5),
    ("cultural", "state", "any", 10),
    ("technical", "college", "any", 5),
    ("hackathon", "college", "first", 15),
    ("hackathon", "college", "any", 8),
    ("hackathon", "national", "first", 30),
    ("hackathon", "national", "any", 15),
    ("nss", "college", "any", 10),
    ("ncc", "college", "any", 10),
    ("internship", "college", "any", 15),
    ("workshop", "college", "any", 3),
    ("seminar", "college", "any", 2),
    ("paper_publication", "national", "any", 20),
    ("paper_publication", "international", "any", 30),
    ("project", "college", "any", 10),
    ("volunteer", "college", "any", 5),
]


async def seed():
    from sqlalchemy import select, func
    from capms.core.database import engine, AsyncSessionLocal, Base
    from capms.core.security import hash_password
    from capms.models import (
        ActivityLevel,
        ActivityType,
        Rule,
        RulePosition,
        SubscribedClass,
        User,
        UserRole,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    accounts = [
        dict(
            full_name="Admin User",
            email=ADMIN_EMAIL,
            password=ADMIN_PASSWORD,
            dob=date(1990, 1, 1),
            registration_number="ADMIN001",
            branch="ADMIN",
            role=UserRole.ADMIN,
            classes=[],
        ),
        dict(
            full_name="Teacher User",
            email=TEACHER_EMAIL,
            password=TEACHER_PASSWORD,
            dob=date(1985, 1, 1),
            registration_number="TEACHER001",
            branch="CS",
            role=UserRole.TEACHER,
            classes=TEACHER_CLASSES,
        ),
    ]

    async with AsyncSessionLocal() as db:
        for account in accounts:
            existing = (await db.execute(
                select(User).where(User.email == account["email"])
            )).scalar_one_or_none()
            if existing:
                print(f"⚠️  {account['role'].value} already exists: {account['email']}, skipping")
                continue

            user = User(
                full_name=account["full_name"],
                email=account["email"],
                password_hash=hash_password(account["password"]),
                dob=account["dob"],
                registration_number=account["registration_number"],
                branch=account["branch"],
                semester="NA",
                section="",
                role=account["role"],
                verified=True,
                profile_verified=True,
            )
            user.subscribed_classes = [
                SubscribedClass(branch=b, semester=s, section=sec) for b, s, sec in account["classes"]
            ]
            db.add(user)
            print(f"✅  Created {account['role'].value}: {account['email']}")

        rule_count = (await db.execute(select(func.count(Rule.id)))).scalar_one()
        if rule_count:
            print(f"⚠️  {rule_count} rules already present, rule table left as is")
        else:
            for activity_type, level, position, points in DEFAULT_RULES:
                db.add(Rule(
                    activity_type=ActivityType(activity_type),
                    level=ActivityLevel(level),
                    position=RulePosition(position),
                    points=points,
                    description=f"{activity_type} / {level} / {position}",
                ))
            print(f"✅  Seeded {len(DEFAULT_RULES)} rules")

        await db.commit()

    await engine.dispose()
    print("\nSeeding complete. Change the default passwords after first login!")


if __name__ == "__main__":
    asyncio.run(seed())
