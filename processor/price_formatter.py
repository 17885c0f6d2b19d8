"""Price parsing and formatting for imported events."""
import re
from typing import Dict, Optional


FREE_PATTERN = re.compile(r'^free$', re.IGNORECASE)
AMOUNT_PATTERN = re.compile(r'[\d,]+(?:\.\d{2})?')


def format_range(min_price: Optional[float], max_price: Optional[float] = None) -> str:
    """
    Format a price or price range.

    Args:
        min_price: Lowest price (None or <= 0 when unknown)
        max_price: Highest price (None or <= 0 when unknown)

    Returns:
        '$10.00', '$10.00 - $20.00' or '' when no price is known
    """
    min_price = min_price or 0.0
    max_price = max_price or 0.0

    if min_price <= 0 and max_price <= 0:
        return ''

    if min_price > 0 and (max_price <= 0 or abs(min_price - max_price) < 0.01):
        return f'${min_price:,.2f}'

    if min_price <= 0 < max_price:
        return f'${max_price:,.2f}'

    if min_price > max_price:
        min_price, max_price = max_price, min_price

    return f'${min_price:,.2f} - ${max_price:,.2f}'


def parse(raw: str) -> Dict:
    """
    Parse a free-form price string.

    Returns:
        Dict with 'min', 'max' and 'is_free'
    """
    result = {'min': None, 'max': None, 'is_free': False}
    raw = (raw or '').strip()

    if not raw:
        return result

    if FREE_PATTERN.match(raw):
        result['is_free'] = True
        return result

    values = []
    for match in AMOUNT_PATTERN.findall(raw):
        cleaned = match.replace(',', '')
        if cleaned:
            try:
                values.append(float(cleaned))
            except ValueError:
                continue

    if values:
        result['min'] = values[0]
        result['max'] = values[1] if len(values) > 1 else None

    return result


def normalize(raw: str) -> str:
    """Normalize a raw price string to 'Free', a formatted range, or as given."""
    parsed = parse(raw)
    if parsed['is_free']:
        return 'Free'
    formatted = format_range(parsed['min'], parsed['max'])
    return formatted or (raw or '').strip()
