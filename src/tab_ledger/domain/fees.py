"""Late-arrival fee schedule.

1-4 minutes late costs 100 cents; every further full 5 minutes adds 100 cents,
capped at 500 cents.
"""

LATE_FEE_STEP_MINUTES = 5
LATE_FEE_UNIT_CENTS = 100
LATE_FEE_MAX_UNITS = 5


def late_fee_cents(minutes_late: int) -> int:
    """Fee for arriving *minutes_late* minutes late; 0 when not late at all."""
    if minutes_late <= 0:
        return 0
    units = min(minutes_late // LATE_FEE_STEP_MINUTES + 1, LATE_FEE_MAX_UNITS)
    return units * LATE_FEE_UNIT_CENTS
