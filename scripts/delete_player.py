#!/usr/bin/env python3
"""
Delete an account by email so the email/username can be registered again.
Stats and bot games go with it; finished multiplayer records keep the name.
Usage (from repo root): python scripts/delete_player.py <email> [--db-url URL]
"""
import argparse
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))


def main() -> None:
    parser = argparse.ArgumentParser(description="Delete a Sequential Blotto account")
    parser.add_argument("email")
    parser.add_argument("--db-url", help="Overrides DATABASE_URL")
    args = parser.parse_args()
    if args.db_url:
        os.environ["DATABASE_URL"] = args.db_url

    # Imported late so --db-url is seen by backend.api.database
    from backend.api.auth import delete_account
    from backend.api.database import SessionLocal

    db = SessionLocal()
    try:
        username = delete_account(db, args.email)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()
    if username is None:
        print(f"No player found with email: {args.email!r}")
        return
    print(f"Deleted player {username!r} ({args.email}). You can now register again.")


if __name__ == "__main__":
    main()
