"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

MIN_HOUR = 1
MAX_HOUR = 15
MAX_PRESENT_HOURS_PER_DAY = 12

SETTINGS_ROW_ID = 1
SETTINGS_UPDATE_ATTEMPTS = 3

UPCOMING_PAYMENT_WINDOW_DAYS = 30
DEFAULT_CHANGE_FEED_INTERVAL = 5.0
