"""
Test environment.

Points the app at a throwaway SQLite file before any appointly module is
imported, so the engine in appointly.database is created against it.
"""

import os
import tempfile

_db_dir = tempfile.mkdtemp(prefix="appointly-tests-")

os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_db_dir, 'test.db')}"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["BUSINESS_TIMEZONE"] = "Europe/Istanbul"
os.environ["DEFAULT_COUNTRY_CODE"] = "90"
os.environ["REMINDER_PACING_SECONDS"] = "0"
os.environ["REMINDER_CATCHUP_MINUTES"] = "0"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
