# backend/fincatch/services/valuation/bond_pricer.py
"""
Bond present-value pricer.

    PV = Σ C / (1 + r)^t  +  FV / (1 + r)^n

    C = FV × coupon_rate / periods_per_year
    r = ytm / periods_per_year
    n = ceil(years_to_maturity × periods_per_year)

The nearest cash flow is NOT compound-discounted. It uses a simple-interest
stub factor instead:

    1 / (1 + r × stub)      stub = ceil(days to maturity) / 365, 3 decimals

The coupon at t = 1 always takes the stub factor. The face value takes it
only when a single period remains (n <= 1); otherwise it is discounted over
n full periods. Note the stub is measured to MATURITY, not to the next coupon
date, so it exceeds one period whenever more than one period remains.

A bond at or past maturity is worth its face value.
"""

import logging
from decimal import Decimal, ROUND_CEILING, ROUND_HALF_UP

from fincatch.models import CouponFrequency
from fincatch.services.constants import (
    DAYS_PER_YEAR,
    PERIODS_PER_YEAR,
    STUB_RATIO_PLACES,
)
from fincatch.utils.date_utils import SECONDS_PER_DAY, days_remaining, now_timestamp

logger = logging.getLogger(__name__)

_HUNDRED = Decimal("100")
_ONE = Decimal("1")
_SECONDS_PER_YEAR = Decimal(DAYS_PER_YEAR * SECONDS_PER_DAY)


class BondPricer:
    """
    Computes the present value of a bond's remaining cash flows.

    Stateless; all time dependence goes through the `now_ts` argument so
    results are reproducible.

    Example:
        pricer = BondPricer()
        value = pricer.present_value(
            face_value=Decimal("1000"),
            coupon_rate=Decimal("5"),
            ytm=Decimal("5"),
            maturity_date=maturity_ts,
            coupon_frequency=CouponFrequency.ANNUAL,
        )
    """

    def present_value(
            self,
            face_value: Decimal,
            coupon_rate: Decimal,
            ytm: Decimal,
            maturity_date: int,
            coupon_frequency: CouponFrequency | str,
            now_ts: int | None = None,
    ) -> Decimal:
        """
        Present value of one bond.

        Args:
            face_value: Redemption amount per bond
            coupon_rate: Annual coupon rate, percent (5 = 5%)
            ytm: Annual yield to maturity, percent
            maturity_date: Unix seconds
            coupon_frequency: annual / semiannual / quarterly / monthly
            now_ts: Valuation time (default: now)

        Returns:
            Present value per bond (unrounded)

        Raises:
            ValueError: Unknown coupon frequency
            ArithmeticError: Degenerate yield (e.g. -100%) makes discounting undefined
        """
        if now_ts is None:
            now_ts = now_timestamp()

        seconds_to_maturity = maturity_date - now_ts
        if seconds_to_maturity <= 0:
            return face_value

        periods_per_year = self.periods_per_year(coupon_frequency)
        years_to_maturity = Decimal(seconds_to_maturity) / _SECONDS_PER_YEAR

        periodic_coupon = face_value * (coupon_rate / _HUNDRED) / periods_per_year
        periodic_ytm = (ytm / _HUNDRED) / periods_per_year
        remaining_periods = int(
            (years_to_maturity * periods_per_year).to_integral_value(rounding=ROUND_CEILING)
        )

        stub_factor = _ONE + periodic_ytm * self.stub_ratio(maturity_date, now_ts)
        compound_base = _ONE + periodic_ytm

        pv_coupons = Decimal("0")
        for t in range(remaining_periods, 0, -1):
            if t > 1:
                pv_coupons += periodic_coupon / compound_base ** t
            else:
                pv_coupons += periodic_coupon / stub_factor

        if remaining_periods > 1:
            pv_face = face_value / compound_base ** remaining_periods
        else:
            pv_face = face_value / stub_factor

        logger.debug(
            f"Bond PV: periods={remaining_periods}, coupon={periodic_coupon}, "
            f"ytm/period={periodic_ytm}, pv={pv_coupons + pv_face}"
        )
        return pv_coupons + pv_face

    @staticmethod
    def periods_per_year(coupon_frequency: CouponFrequency | str) -> int:
        key = (
            coupon_frequency.value
            if isinstance(coupon_frequency, CouponFrequency)
            else coupon_frequency
        )
        try:
            return PERIODS_PER_YEAR[key]
        except KeyError:
            raise ValueError(f"Unknown coupon frequency: '{coupon_frequency}'") from None

    @staticmethod
    def stub_ratio(maturity_date: int, now_ts: int) -> Decimal:
        """Fraction of a 365-day year until maturity, rounded to 3 places (0 if past)."""
        days = days_remaining(maturity_date, now_ts)
        return (Decimal(days) / DAYS_PER_YEAR).quantize(
            STUB_RATIO_PLACES, rounding=ROUND_HALF_UP
        )
