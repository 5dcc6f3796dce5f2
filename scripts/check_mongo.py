"""Check MongoDB connectivity and, optionally, create the app's indexes."""

from __future__ import annotations

import argparse
import logging

from scripts._bootstrap import bootstrap

logger = logging.getLogger("scripts.check_mongo")


def main() -> int:
    bootstrap()

    from telecare.core.dependencies import (
        get_chat_history_store,
        get_conversation_store,
        get_mongo_connector,
        get_report_service,
    )
    from telecare.core.exceptions import TelecareException
    from telecare.core.settings import settings

    parser = argparse.ArgumentParser(description="Check MongoDB connectivity")
    parser.add_argument(
        "--ensure-indexes",
        action="store_true",
        help="Create the conversation, chat history and report indexes",
    )
    args = parser.parse_args()

    if not settings.mongo_uri or not settings.mongo_database:
        logger.error("MONGO_URI and/or MONGO_DATABASE are not configured.")
        return 2

    try:
        get_mongo_connector().ping()
    except RuntimeError as exc:  # pragma: no cover - network interaction
        logger.error("Mongo ping failed: %s", exc.__cause__ or exc)
        return 1

    logger.info("OK: Connected to MongoDB (database='%s')", settings.mongo_database)

    if args.ensure_indexes:
        for provider in (get_conversation_store, get_chat_history_store, get_report_service):
            try:
                provider().ensure_indexes()
            except TelecareException as exc:  # pragma: no cover - network interaction
                logger.error("Index creation failed: %s", exc.message)
                return 1
        logger.info("Indexes ensured")

    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    raise SystemExit(main())
