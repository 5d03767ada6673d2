#!/usr/bin/env python3
"""Database setup script for TrendStream.

Creates all tables and optionally seeds trend names from a text file
(one name per line) through the repository layer.
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy.exc import SQLAlchemyError

from trendstream.core.db import create_all, dispose_engine, drop_all, get_sessionmaker
from trendstream.core.repositories import fetch_trends, insert_trend
from trendstream.core.settings import get_settings

settings = get_settings()


async def seed_trends(session, path: Path) -> int:
    """Insert every trend name listed in ``path``; returns names processed."""
    if not path.exists():
        print(f"Warning: {path} not found, skipping...")
        return 0

    names = [line.strip() for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]
    print(f"Found {len(names)} trend names in {path}")

    for name in names:
        trend_id = await insert_trend(session, name)
        print(f"  {trend_id:4d}  {name}")
    return len(names)


async def print_trend_summary(session):
    """Print the trends stored in the database."""
    trends = await fetch_trends(session)
    print("\n" + "=" * 60)
    print("TREND SUMMARY")
    print("=" * 60)
    print(f"Total trends: {len(trends)}")
    for trend in trends[:20]:
        print(f"  {trend.id:4d}. {trend.name}")
    if len(trends) > 20:
        print(f"  ... and {len(trends) - 20} more")


async def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create TrendStream tables")
    parser.add_argument("--drop", action="store_true", help="Drop existing tables first")
    parser.add_argument("--trends", type=Path, help="Seed trend names from this file")
    args = parser.parse_args(argv)

    db_location = settings.db_url.split("@")[-1]
    print(f"Initializing database at {db_location}")

    try:
        if args.drop:
            await drop_all()
            print("Dropped existing tables")

        await create_all()
        print("Database tables ready")

        async with get_sessionmaker()() as session:
            if args.trends:
                await seed_trends(session, args.trends)
            await print_trend_summary(session)

    except SQLAlchemyError as e:
        print(f"Database error: {e}")
        return 1
    finally:
        await dispose_engine()

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
