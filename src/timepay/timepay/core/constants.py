"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

from decimal import Decimal

DEFAULT_GRACE_MINUTES = 0
DEFAULT_RULE_SCOPE = "global"

# Hourly rate derivation for overtime pay and lateness deductions.
PAY_DAYS_PER_MONTH = 30
PAY_HOURS_PER_DAY = 8

CENTS = Decimal("0.01")

NOTIFY_MAX_ATTEMPTS = 3
