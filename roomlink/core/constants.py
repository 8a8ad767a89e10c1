"""
Application-wide constants.
"""

from decimal import Decimal

# Pagination
DEFAULT_PAGE: int = 1
DEFAULT_PAGE_SIZE: int = 20
MAX_PAGE_SIZE: int = 100

# Pricing
WEEKLY_DISCOUNT_MIN_NIGHTS: int = 7
MONTHLY_DISCOUNT_MIN_NIGHTS: int = 30
SERVICE_FEE_RATE: Decimal = Decimal("0.05")
TAX_RATE: Decimal = Decimal("0.08")
MONEY_QUANTUM: Decimal = Decimal("0.01")

# Cancellation refund tiers (percent)
FULL_REFUND_PERCENT: int = 100
PARTIAL_REFUND_PERCENT: int = 50
PARTIAL_REFUND_MIN_DAYS: int = 1

# Hostel defaults
DEFAULT_CHECK_IN_TIME: str = "14:00"
DEFAULT_CHECK_OUT_TIME: str = "11:00"
DEFAULT_CANCELLATION_DAYS: int = 7
DEFAULT_MIN_STAY: int = 1
DEFAULT_MAX_STAY: int = 365

# Booking inspection defaults
DEFAULT_ROOM_CONDITION: str = "Good"
DEFAULT_DAMAGES: str = "None"
DEFAULT_CANCEL_REASON: str = "No reason provided"

# Dashboards
RECENT_ITEMS_LIMIT: int = 5
TOP_HOSTELS_LIMIT: int = 10
TREND_DAYS_DEFAULT: int = 30
TREND_DAYS_MAX: int = 365
