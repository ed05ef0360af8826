"""
Console entry points.

``registry-send-reminders`` runs one reminder/expiry pass outside the web
process, for cron or a container scheduler.
"""

import json
import logging
import sys

from psycopg_pool import ConnectionPool

from registry.api.dependencies import build_reminder_scheduler
from registry.config.settings import get_settings

logger = logging.getLogger(__name__)


def send_reminders() -> int:
    """Run the scheduler once and print the JSON summary; exit 1 on failure."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    settings = get_settings()

    with ConnectionPool(conninfo=settings.database_url, min_size=1, max_size=2) as pool:
        try:
            summary = build_reminder_scheduler(pool, settings).run()
        except Exception:
            logger.exception("Reminder job failed")
            print(json.dumps({"success": False, "error": "Reminder job failed"}))
            return 1

    print(json.dumps(summary.as_dict()))
    return 0


if __name__ == "__main__":
    sys.exit(send_reminders())
