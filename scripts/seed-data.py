#!/usr/bin/env python3
"""
Seed the dev social database with a handful of profiles and follows.
Run from repo root: python scripts/seed-data.py
Uses SOCIAL_DATABASE_URL from env or .env.
"""
import asyncio
import sys
import uuid
from pathlib import Path

# Repo root on path for shared and service imports
repo_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(repo_root / "shared"))
sys.path.insert(0, str(repo_root / "services" / "social"))

SEED_USERS = [
    ("seed.alice", "Alice", False),
    ("seed.bob", "Bob", False),
    ("seed.carol", "Carol", True),
]


def seed_social() -> None:
    from app.config import get_settings
    from app.database import init_db, get_session_factory
    from app.profile import service as profile_svc
    from app.social_graph import service as graph_svc

    init_db(get_settings().social_database_url)
    factory = get_session_factory()

    async def _run() -> None:
        ids = {}
        async with factory() as session:
            for username, display_name, is_private in SEED_USERS:
                user_id = uuid.uuid5(uuid.NAMESPACE_DNS, f"{username}.jorvea.local")
                await profile_svc.update_profile(
                    session,
                    user_id,
                    {"username": username, "display_name": display_name, "is_private": is_private},
                )
                ids[username] = user_id
            await session.commit()

            alice, bob, carol = (ids[u] for u, _, _ in SEED_USERS)
            await graph_svc.follow(session, alice, bob)
            await graph_svc.follow(session, bob, alice)
            # Carol is private, so this leaves a pending request
            await graph_svc.follow(session, alice, carol)
            await session.commit()

    asyncio.run(_run())
    print(f"Social: seeded {len(SEED_USERS)} profiles")


def main() -> None:
    seed_social()
    print("Seed done.")


if __name__ == "__main__":
    main()
