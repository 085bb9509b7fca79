#!/usr/bin/env python3
"""
Delete multiplayer rooms nobody has touched for a while (abandoned lobbies, stalled rounds).
Run periodically, e.g. hourly from cron. Usage (from repo root):
  python -m backend.scripts.cleanup_rooms [idle_minutes]
Default idle time comes from backend.config.ROOM_IDLE_MINUTES.
"""
import sys
import os

# Run from repo root so backend is importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from backend.api.database import SessionLocal, get_db_file_path, init_db
from backend.api.multiplayer import cleanup_old_rooms
from backend.config import ROOM_IDLE_MINUTES


def main():
    idle_minutes = ROOM_IDLE_MINUTES
    if len(sys.argv) > 1:
        try:
            idle_minutes = int(sys.argv[1])
        except ValueError:
            print("Usage: python -m backend.scripts.cleanup_rooms [idle_minutes]")
            sys.exit(1)

    init_db()
    db = SessionLocal()
    try:
        removed = cleanup_old_rooms(db, idle_minutes)
        print(f"Removed {removed} room(s) idle for more than {idle_minutes} minutes")
        db_path = get_db_file_path()
        if db_path:
            print(f"DB file: {db_path}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
