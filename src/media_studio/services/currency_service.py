"""
Currency conversion and display for offline payments

Packages are priced in Myanmar Kyat (KS); Thai customers transfer the
equivalent amount in Baht.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Union
import logging

logger = logging.getLogger(__name__)

Number = Union[int, float, Decimal]


class CurrencyService:
    """KS/THB conversions used on the payment page"""

    SUPPORTED_CURRENCIES = ["KS", "THB", "USD"]

    # Package prices with an agreed Baht amount
    FIXED_KS_TO_THB = {
        Decimal("25000"): Decimal("175"),
        Decimal("20000"): Decimal("150"),
    }

    # Approximate rate for any other amount
    KS_TO_THB_RATE = Decimal("0.007")

    def convert(self, amount: Number, from_currency: str, to_currency: str) -> Decimal:
        """
        Convert an amount between currencies

        Only KS -> THB is defined; any other pair returns the amount unchanged.
        """
        value = Decimal(str(amount))
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()

        if from_currency == "KS" and to_currency == "THB":
            if value in self.FIXED_KS_TO_THB:
                return self.FIXED_KS_TO_THB[value]
            return (value * self.KS_TO_THB_RATE).quantize(Decimal("1"), rounding=ROUND_HALF_UP)

        if from_currency != to_currency:
            logger.debug(f"No conversion defined for {from_currency} -> {to_currency}")
        return value

    @staticmethod
    def format_currency(amount: Number, currency: str) -> str:
        """Format an amount with the currency's symbol"""
        value = Decimal(str(amount))
        # Drop a trailing ".00" so "20000.00" renders as "20000"
        if value == value.to_integral_value():
            value = value.quantize(Decimal("1"))
        currency = (currency or "").upper()

        if currency == "USD":
            return f"${value}"
        if currency == "THB":
            return f"฿{value}"
        if currency == "KS":
            return f"{value} Ks"
        return f"{value}"
