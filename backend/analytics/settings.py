"""Runtime configuration for the analytics service, read from backend/.env."""

import os
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parent.parent
load_dotenv(ROOT_DIR / '.env')

SUPABASE_URL = os.environ.get('SUPABASE_URL')
SUPABASE_KEY = os.environ.get('SUPABASE_SERVICE_KEY')
DB_AVAILABLE = bool(SUPABASE_URL and SUPABASE_KEY)

# Lookback window used when a caller does not pass ?days=
DEFAULT_LOOKBACK_DAYS = int(os.environ.get('ANALYTICS_DEFAULT_DAYS', '30'))
MAX_LOOKBACK_DAYS = 365

# Row fetches are paged with .range(); PostgREST's default max-rows is 1000
PAGE_SIZE = int(os.environ.get('ANALYTICS_PAGE_SIZE', '1000'))
# Hard stop for a single paged fetch; hitting it is logged as a warning
MAX_ROWS = int(os.environ.get('ANALYTICS_MAX_ROWS', '100000'))

LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()
CORS_ORIGINS = [
    o.strip() for o in os.environ.get('CORS_ORIGINS', '*').split(',') if o.strip()
]
