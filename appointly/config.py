import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./appointly.db")

# Wall-clock time of the businesses; slots, "past" checks and reminder targets use it
BUSINESS_TIMEZONE = os.getenv("BUSINESS_TIMEZONE", "Europe/Istanbul")

# Tenant setting defaults (used when a tenant has no settings row)
DEFAULT_APPOINTMENT_INTERVAL = int(os.getenv("DEFAULT_APPOINTMENT_INTERVAL", "30"))
DEFAULT_REMINDER_MINUTES = int(os.getenv("DEFAULT_REMINDER_MINUTES", "120"))
DEFAULT_BLACKLIST_THRESHOLD = int(os.getenv("DEFAULT_BLACKLIST_THRESHOLD", "3"))

# System default opening hours, last link of the working-hours fallback chain
DEFAULT_OPEN_TIME = os.getenv("DEFAULT_OPEN_TIME", "09:00")
DEFAULT_CLOSE_TIME = os.getenv("DEFAULT_CLOSE_TIME", "18:00")

# Service duration assumed when availability is requested without a service
DEFAULT_SERVICE_DURATION = int(os.getenv("DEFAULT_SERVICE_DURATION", "30"))

# Reminder dispatcher
REMINDER_CRON_INTERVAL_MINUTES = int(os.getenv("REMINDER_CRON_INTERVAL_MINUTES", "5"))
# 0 keeps exact-minute matching; N also catches appointments up to N-1 minutes behind the target
REMINDER_CATCHUP_MINUTES = int(os.getenv("REMINDER_CATCHUP_MINUTES", "0"))
REMINDER_MAX_CONCURRENCY = int(os.getenv("REMINDER_MAX_CONCURRENCY", "5"))
REMINDER_PACING_SECONDS = float(os.getenv("REMINDER_PACING_SECONDS", "0.1"))
NOTIFICATION_TIMEOUT_SECONDS = float(os.getenv("NOTIFICATION_TIMEOUT_SECONDS", "10"))

# Daily WhatsApp agenda for staff, HH:MM business time
STAFF_SUMMARY_TIME = os.getenv("STAFF_SUMMARY_TIME", "08:30")

# Shared secret the external scheduler sends as a Bearer token to the /reminders endpoints
CRON_SECRET = os.getenv("CRON_SECRET")

# Whapi.cloud WhatsApp channel
WHAPI_API_URL = os.getenv("WHAPI_API_URL", "https://gate.whapi.cloud")
WHAPI_API_TOKEN = os.getenv("WHAPI_API_TOKEN")

# Twilio SMS channel
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_FROM_NUMBER = os.getenv("TWILIO_FROM_NUMBER")
TWILIO_MESSAGING_SERVICE_SID = os.getenv("TWILIO_MESSAGING_SERVICE_SID")

# Country calling code prepended to local phone numbers (no leading +)
DEFAULT_COUNTRY_CODE = os.getenv("DEFAULT_COUNTRY_CODE", "90")
