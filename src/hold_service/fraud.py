from decimal import Decimal


class AmountLimitFraudCheck:
    """Rejects amounts above a ceiling. The ceiling itself is allowed."""

    def __init__(self, limit: Decimal):
        self.limit = Decimal(limit)

    def __call__(self, amount: Decimal) -> str | None:
        if Decimal(amount) > self.limit:
            return "Transaction amount exceeds fraud limit"
        return None
