import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./venue_engine.db")

# Venue timezone - fixed offset from UTC (Orlando EST = -5), no DST table lookups
VENUE_UTC_OFFSET_HOURS = int(os.getenv("VENUE_UTC_OFFSET_HOURS", "-5"))

# Balance payment notice policy
SHORT_NOTICE_DAYS = int(os.getenv("SHORT_NOTICE_DAYS", "15"))
BALANCE_RETRY_INTERVAL_HOURS = int(os.getenv("BALANCE_RETRY_INTERVAL_HOURS", "48"))
# Local wall time of the first long-notice retry (event date minus SHORT_NOTICE_DAYS)
LONG_NOTICE_FIRST_RETRY_TIME = os.getenv("LONG_NOTICE_FIRST_RETRY_TIME", "09:00")

# Event anchors used when a booking has no usable start/end time
DAILY_EVENT_START = os.getenv("DAILY_EVENT_START", "10:00")
DAILY_LIFECYCLE_START = os.getenv("DAILY_LIFECYCLE_START", "06:00")
HOURLY_DEFAULT_DURATION_HOURS = int(os.getenv("HOURLY_DEFAULT_DURATION_HOURS", "4"))
DAILY_DEFAULT_DURATION_HOURS = int(os.getenv("DAILY_DEFAULT_DURATION_HOURS", "24"))

# Guest feedback email goes out this long after the event ends
GUEST_FEEDBACK_DELAY_MINUTES = int(os.getenv("GUEST_FEEDBACK_DELAY_MINUTES", "30"))

# in_progress -> post_event needs a submitted host report and this much time after event end
POST_EVENT_GRACE_HOURS = int(os.getenv("POST_EVENT_GRACE_HOURS", "24"))

# Payment-link collaborator (creates the balance checkout link and emails it)
PAYMENT_LINK_URL = os.getenv("PAYMENT_LINK_URL", "http://localhost:54321/functions/v1/create-balance-payment-link")
PAYMENT_LINK_TOKEN = os.getenv("PAYMENT_LINK_TOKEN")

# CRM sync collaborator (pushes a booking snapshot to the CRM)
CRM_SYNC_URL = os.getenv("CRM_SYNC_URL", "http://localhost:54321/functions/v1/sync-to-ghl")
CRM_SYNC_TOKEN = os.getenv("CRM_SYNC_TOKEN")

COLLABORATOR_TIMEOUT_SECONDS = float(os.getenv("COLLABORATOR_TIMEOUT_SECONDS", "30"))

# Frontend base URL (CORS)
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
