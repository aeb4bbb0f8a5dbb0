#!/usr/bin/env python
"""Seed the development database with a few profiles.

Gives a local messaging UI someone to talk to: inserts fixed demo profiles
that can be found via /users/search and used as conversation partners.

Constraints:
- Refuses to run in staging or prod (HUNDREDNET_ENV check)
- Idempotent via ON CONFLICT DO NOTHING
- Never runs automatically (manual invocation only)

Usage:
    DATABASE_URL=... python scripts/seed_dev.py
"""

import os
import sys

DEMO_PROFILES = [
    ("00000000-0000-4000-8000-000000000001", "Ada", "Recruiter"),
    ("00000000-0000-4000-8000-000000000002", "Grace", "Candidate"),
    ("00000000-0000-4000-8000-000000000003", "Linus", "Hiring Manager"),
]


def main():
    # 1. Environment check (hard fail in staging/prod)
    env = os.getenv("HUNDREDNET_ENV", "local")
    if env not in ("local", "test"):
        print(f"ERROR: seed_dev.py refuses to run in HUNDREDNET_ENV={env}")
        sys.exit(1)

    # 2. Check DATABASE_URL
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        print("ERROR: DATABASE_URL environment variable must be set")
        sys.exit(1)

    from sqlalchemy import create_engine, text

    engine = create_engine(database_url)

    # 3. Idempotent seeding
    created = []
    with engine.connect() as conn:
        for profile_id, first_name, last_name in DEMO_PROFILES:
            result = conn.execute(
                text("""
                    INSERT INTO profiles (id, first_name, last_name)
                    VALUES (:id, :first_name, :last_name)
                    ON CONFLICT (id) DO NOTHING
                    RETURNING id
                """),
                {"id": profile_id, "first_name": first_name, "last_name": last_name},
            )
            created.append(result.fetchone() is not None)
        conn.commit()

    # 4. Report
    db_display = database_url.split("@")[1] if "@" in database_url else database_url
    print(f"Database: {db_display}")
    print(f"HUNDREDNET_ENV: {env}")
    print()
    for (profile_id, first_name, last_name), was_created in zip(DEMO_PROFILES, created):
        status = "Created" if was_created else "Exists"
        print(f"{status}: profile {profile_id} ({first_name} {last_name})")


if __name__ == "__main__":
    main()
