#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT))

from salon_crm.core.config import DEV_BOOTSTRAP_ALLOW, IS_DEV  # noqa: E402
from salon_crm.core.database import SessionLocal, engine  # noqa: E402
from salon_crm.services.profile_bootstrap import (  # noqa: E402
    ensure_profiles_table,
    ensure_salon,
    upsert_profile,
)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create or update a salon owner profile (DEV).")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--salon", type=int, help="Existing salon ID")
    target.add_argument("--salon-name", help="Create a new salon with this name")
    parser.add_argument("--email", required=True, help="Profile email")
    parser.add_argument("--password", help="Profile password")
    parser.add_argument("--name", required=True, help="Profile full name")
    parser.add_argument("--role", default="OWNER", help="OWNER or STAFF")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Run without DEV_BOOTSTRAP_ALLOW=1",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    if not DEV_BOOTSTRAP_ALLOW and not args.force:
        print("DEV bootstrap disabled. Set DEV_BOOTSTRAP_ALLOW=1 or pass --force.")
        return 1

    try:
        ensure_profiles_table(engine)
    except RuntimeError as exc:
        print(str(exc))
        return 1

    db = SessionLocal()
    try:
        salon = ensure_salon(db, salon_id=args.salon, salon_name=args.salon_name)
        profile, created = upsert_profile(
            db,
            salon_id=salon.id,
            email=args.email,
            full_name=args.name,
            role=args.role,
            password=args.password,
        )
    except ValueError as exc:
        db.rollback()
        print(str(exc))
        return 1
    finally:
        db.close()

    action = "created" if created else "updated"
    print(f"Profile {action}: salon={profile.salon_id} email={profile.email} role={profile.role}")
    if IS_DEV:
        password_info = args.password if args.password else "<unchanged>"
        print(f"DEV summary -> Salon: {profile.salon_id} | Email: {profile.email} | Password: {password_info}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
