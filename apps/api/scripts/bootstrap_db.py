"""Create or reset the session broker schema.

Usage:
    python scripts/bootstrap_db.py            # create missing tables
    python scripts/bootstrap_db.py --reset    # drop and recreate (deletes all data)
"""
from __future__ import annotations

import argparse
import asyncio
import logging

from callrooms.core.config import get_settings
from callrooms.db.session import build_engine, drop_models, init_models

logger = logging.getLogger("bootstrap_db")


async def bootstrap(*, reset: bool) -> None:
	settings = get_settings()
	engine = build_engine(settings)
	try:
		if reset:
			await drop_models(engine)
			logger.warning("Dropped sessions and participants tables")
		await init_models(engine)
	finally:
		await engine.dispose()


def main() -> None:
	parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
	parser.add_argument("--reset", action="store_true", help="drop all tables before creating them")
	parser.add_argument("--yes", action="store_true", help="skip the confirmation prompt for --reset")
	args = parser.parse_args()

	logging.basicConfig(level=logging.INFO)
	if args.reset and not args.yes:
		answer = input("This deletes every session and participant. Type 'reset' to continue: ")
		if answer.strip() != "reset":
			print("Aborted.")
			return

	asyncio.run(bootstrap(reset=args.reset))
	print("Database schema ensured.")


if __name__ == "__main__":
	main()
