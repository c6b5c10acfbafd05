"""Price-line extraction from pricing page text and USD normalization."""

import re

from app.schemas.blueprint import PricingTier

# Approximate rates; good enough for side-by-side comparison, not for billing.
APPROXIMATE_USD_RATES: dict[str, float] = {
    "EUR": 1.08,
    "GBP": 1.27,
    "CAD": 0.74,
    "AUD": 0.65,
    "JPY": 0.0067,
    "CHF": 1.13,
    "SEK": 0.095,
    "NOK": 0.093,
    "DKK": 0.145,
    "NZD": 0.60,
    "BRL": 0.17,
    "INR": 0.012,
    "MXN": 0.058,
    "SGD": 0.75,
    "HKD": 0.13,
    "KRW": 0.00074,
    "PLN": 0.25,
    "CZK": 0.043,
    "ZAR": 0.055,
}

# Multi-character symbols first so "C$" wins over "$".
CURRENCY_SYMBOLS: tuple[tuple[str, str], ...] = (
    ("C$", "CAD"),
    ("A$", "AUD"),
    ("R$", "BRL"),
    ("zł", "PLN"),
    ("Kč", "CZK"),
    ("kr", "SEK"),
    ("€", "EUR"),
    ("£", "GBP"),
    ("¥", "JPY"),
    ("₹", "INR"),
    ("₩", "KRW"),
)

_AMOUNT_RE = re.compile(r"\d[\d,]*(?:\.\d+)?")
_PRICE_TOKEN_RE = re.compile(
    r"(?:[$€£¥₹₩]|C\$|A\$|R\$)\s?\d[\d,]*(?:\.\d+)?|\d[\d,]*(?:\.\d+)?\s?(?:USD|EUR|GBP|zł|Kč|kr)\b",
)
_BILLING_RE = {
    "monthly": re.compile(r"/\s?(?:mo|mth|month)\b|per month|monthly", re.IGNORECASE),
    "annual": re.compile(r"/\s?(?:yr|year)\b|per year|annually|yearly", re.IGNORECASE),
    "one-time": re.compile(r"one[- ]time|lifetime", re.IGNORECASE),
}
_CUSTOM_PRICE_RE = re.compile(r"\b(?:contact (?:us|sales)|custom pricing|let's talk)\b", re.IGNORECASE)


def detect_currency(price: str, fallback: str | None = None) -> str:
    """ISO code for a price string, from its symbol or an explicit code."""
    for symbol, code in CURRENCY_SYMBOLS:
        if symbol in price:
            return code
    upper = price.upper()
    for code in APPROXIMATE_USD_RATES:
        if code in upper:
            return code
    if fallback and fallback.upper() != "USD":
        return fallback.upper()
    return "USD"


def parse_amount(price: str) -> float | None:
    match = _AMOUNT_RE.search(price)
    if not match:
        return None
    try:
        return float(match.group(0).replace(",", ""))
    except ValueError:
        return None


def to_usd(amount: float | None, currency: str) -> float | None:
    if amount is None:
        return None
    if currency == "USD":
        return amount
    rate = APPROXIMATE_USD_RATES.get(currency)
    if rate is None:
        return None
    return float(round(amount * rate))


def with_usd_equivalent(price: str, fallback_currency: str | None = None) -> str:
    """Append ``(~$X USD)`` to non-USD prices; USD prices come back unchanged.

    ``"€125/mth"`` becomes ``"€125/mth (~$135 USD)"``.
    """
    currency = detect_currency(price, fallback_currency)
    if currency == "USD":
        return price
    usd = to_usd(parse_amount(price), currency)
    if usd is None:
        return price
    return f"{price} (~${usd:.0f} USD)"


def detect_billing_cycle(line: str) -> str | None:
    for cycle, pattern in _BILLING_RE.items():
        if pattern.search(line):
            return cycle
    return None


def build_pricing_tier(name: str, price: str, fallback_currency: str | None = None) -> PricingTier:
    currency = detect_currency(price, fallback_currency)
    amount = parse_amount(price)
    return PricingTier(
        name=name,
        price=with_usd_equivalent(price, fallback_currency),
        amount=amount,
        currency=currency,
        usd_amount=to_usd(amount, currency),
        billing_cycle=detect_billing_cycle(price),
    )


def extract_pricing_tiers(text: str, max_tiers: int = 6) -> list[PricingTier]:
    """Pair each price line with the nearest preceding short line as its tier name.

    Duplicate tier names (monthly/annual toggles) keep their first price.
    """
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    tiers: list[PricingTier] = []
    seen: set[str] = set()

    for idx, line in enumerate(lines):
        token = _PRICE_TOKEN_RE.search(line)
        custom = token is None and _CUSTOM_PRICE_RE.search(line)
        if token is None and not custom:
            continue

        name = _tier_name(lines, idx)
        if not name or name.lower() in seen:
            continue

        if token is not None:
            price = line[token.start():].split("  ")[0].strip()
            price = price[:40]
        else:
            price = "Custom"
        seen.add(name.lower())
        tiers.append(build_pricing_tier(name, price))
        if len(tiers) >= max_tiers:
            break

    return tiers


def _tier_name(lines: list[str], price_idx: int) -> str | None:
    for back in range(1, 4):
        idx = price_idx - back
        if idx < 0:
            return None
        candidate = lines[idx]
        if _PRICE_TOKEN_RE.search(candidate):
            return None
        if 1 <= len(candidate.split()) <= 4 and len(candidate) <= 40:
            return candidate.rstrip(":")
    return None
