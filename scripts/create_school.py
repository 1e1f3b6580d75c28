#!/usr/bin/env python3
"""
Script to create a school account from the command line.
"""
import getpass
import sys
from pathlib import Path

# Add parent directory to the system path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy.exc import SQLAlchemyError

from database.connection import Database
from services.account_service import AccountService
from core.errors import PortalError
import config


def create_school():
    """Create a school account."""
    config.db = Database(
        database_url=config.DATABASE_URL,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW
    )

    print("Creating school account...")
    print("=" * 50)

    username = input("Username: ").strip()
    password = getpass.getpass("Password: ")
    school_name = input("School name (optional): ").strip()

    try:
        with config.db.get_session() as db:
            user = AccountService.register(db, username, password)
            if school_name:
                user = AccountService.update_profile(db, user.id, {"school_name": school_name})
            print(f"\n✓ School account created successfully!")
            print(f"  ID: {user.id}")
            print(f"  Username: {user.username}")
            print(f"  School: {user.display_name}")
    except PortalError as e:
        print(f"\n✗ Error: {e.detail}")
        sys.exit(1)
    except SQLAlchemyError as e:
        print(f"\n✗ Database error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    create_school()
