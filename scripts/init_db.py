"""Create the simulation database schema.

This script:
1. Resolves the database URL (--url, else SIMULATOR_DATABASE_URL, else the DATA/ default)
2. Creates any missing tables
3. Prints the row count of every table
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import argparse
import logging

from sqlalchemy import func, select

from simulator.config import DatabaseConfig
from simulator.db.models import Base, create_db_engine, get_session


def main(argv=None):
    """Create tables and report their sizes."""
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--url", help="Database URL (overrides SIMULATOR_DATABASE_URL)")
    parser.add_argument("--echo", action="store_true", help="Log emitted SQL")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    config = DatabaseConfig.from_env()
    if args.url:
        config = DatabaseConfig(url=args.url, echo=config.echo)
    if args.echo:
        config.echo = True

    print("=" * 60)
    print(f"DATABASE: {config.url}")
    print("=" * 60)

    engine = create_db_engine(config.url, echo=config.echo)

    with get_session(engine) as session:
        for table in Base.metadata.sorted_tables:
            rows = session.scalar(select(func.count()).select_from(table))
            print(f"  {table.name}: {rows:,} rows")

    engine.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main())
