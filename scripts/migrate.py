"""Script to run Alembic migrations for the metadata and chunks tables."""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from alembic.config import Config
from alembic import command


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Run Alembic migrations")
    parser.add_argument(
        "--create",
        type=str,
        help="Create a new migration with the given message",
    )
    parser.add_argument(
        "--downgrade",
        type=int,
        help="Downgrade by N revisions",
    )
    parser.add_argument(
        "--sql",
        action="store_true",
        help="Print the upgrade SQL instead of applying it",
    )

    args = parser.parse_args()

    alembic_cfg = Config(str(Path(__file__).parent.parent / "alembic.ini"))

    if args.create:
        command.revision(alembic_cfg, autogenerate=True, message=args.create)
    elif args.downgrade:
        command.downgrade(alembic_cfg, f"-{args.downgrade}")
    else:
        command.upgrade(alembic_cfg, "head", sql=args.sql)
