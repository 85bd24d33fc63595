"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

# Present days in a month from which a student owes the monthly fee.
PAYMENT_THRESHOLD_DAYS = 2

MIN_PAYMENT_YEAR = 2020
MAX_PAYMENT_YEAR = 2050

MAX_NOTE_LENGTH = 500

DEFAULT_PAGE_LIMIT = 100
DEFAULT_TOKEN_MAX_AGE_SECONDS = 7 * 24 * 3600

AUTH_HEADER = "x-auth-token"
