"""Engine-wide constants and logging setup.

Day counts follow the ACT/365 convention: every calendar day accrues and a
year is always 365 days, leap years included.
"""

from __future__ import annotations

import logging
from decimal import Decimal

DECIMAL_PRECISION = 28

DAYS_IN_YEAR = Decimal(365)

# Average period lengths used by the formula-based models.
PERIOD_DAYS = {
    "Monthly": Decimal("30.417"),
    "Weekly": Decimal(7),
}
PERIODS_PER_YEAR = {
    "Monthly": 12,
    "Weekly": 52,
}

# Same-day ordering of timeline events: principal additions land first, then
# rate changes, then repayments.
EVENT_PRIORITY = {
    "Disbursement": 0,
    "RateChange": 1,
    "Repayment": 2,
}

# Maximum number of rows kept in display-only breakdowns.
PREVIEW_LIMIT = 120

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "WARNING") -> None:
    """Attach a stream handler to the root logger at ``level``."""
    numeric = getattr(logging, str(level).upper(), None)
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level}")
    logging.basicConfig(level=numeric, format=LOG_FORMAT)
