import re
from decimal import Decimal, ROUND_HALF_UP

_NON_DIGITS = re.compile(r'\D')


def normalize_phone(phone: str) -> str:
    """Strip everything but digits, e.g. '+91 98765-43210' -> '919876543210'"""
    return _NON_DIGITS.sub('', phone or '')


def format_inr(amount: float) -> str:
    """Format an amount the way en-IN renders rupees: ₹1,23,456.5"""
    value = Decimal(str(amount)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    sign = '-' if value < 0 else ''
    whole, _, fraction = f"{abs(value):.2f}".partition('.')
    fraction = fraction.rstrip('0')

    # Indian grouping: last three digits, then pairs
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        pairs = []
        while len(head) > 2:
            pairs.insert(0, head[-2:])
            head = head[:-2]
        if head:
            pairs.insert(0, head)
        whole = ','.join(pairs + [tail])

    return f"{sign}₹{whole}" + (f".{fraction}" if fraction else '')
