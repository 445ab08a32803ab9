"""
Text helpers that turn scraped fragments into typed listing fields.

Everything in here is pure: no I/O, no browser, no database.
"""
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional
from urllib.parse import urljoin, urlparse, urlunparse

CURRENCY_SYMBOLS = {"₱": "PHP", "$": "USD", "€": "EUR", "£": "GBP"}

# Codes that mark a fragment as a price when classifying page text
PRICE_CURRENCY_CODES = ("PHP", "USD", "EUR", "GBP")

BREADCRUMB_MARKER = "›"

_SYMBOL_CLASS = "[" + "".join(re.escape(s) for s in CURRENCY_SYMBOLS) + "]"
_CODE_ALTERNATION = "(?:" + "|".join(PRICE_CURRENCY_CODES) + ")"

# Unknown capitalized words next to the amount ("MSRP", "OBO") are not currencies
PRICE_PATTERN = re.compile(
    r"(?:\b(?P<code>" + _CODE_ALTERNATION + r")\s*)?"
    r"(?P<symbol>" + _SYMBOL_CLASS + r")?\s*"
    r"(?P<amount>\d[\d,]*(?:\.\d+)?)"
    r"(?:\s*(?P<suffix>" + _CODE_ALTERNATION + r"\b|" + _SYMBOL_CLASS + r"))?"
)

_PRICE_TOKEN = r"(?:" + _CODE_ALTERNATION + r"|" + _SYMBOL_CLASS + r")"
PRICE_PREFIX_PATTERN = re.compile(r"^" + _PRICE_TOKEN + r"\s*\d[\d,]*")
PRICE_SUFFIX_PATTERN = re.compile(r"^\d[\d,]*\s*" + _PRICE_TOKEN)
CURRENCY_PREFIX_PATTERN = re.compile(r"^" + _PRICE_TOKEN)

YEAR_PATTERN = re.compile(r"\b(?:19|20)\d{2}\b")
# Unit must end the word, except a plural "kms" or a doubled "Kkm"; rejects "2015 Kia"
MILEAGE_PATTERN = re.compile(r"(\d[\d,.]*)\s*(km|k|miles)(?=s?\b|km\b)", re.IGNORECASE)
LISTING_ID_PATTERN = re.compile(r"/item/(\d+)")


@dataclass(frozen=True)
class ParsedPrice:
    amount: Decimal
    currency: str


@dataclass(frozen=True)
class FragmentClassification:
    price: Optional[str] = None
    title: Optional[str] = None


def clean_text(s: Optional[str]) -> str:
    """Collapse runs of whitespace and strip."""
    if not s:
        return ""
    return re.sub(r"\s+", " ", s).strip()


def parse_price(text: Optional[str], default_currency: str = "PHP") -> Optional[ParsedPrice]:
    """
    Parse a price such as "₱1,250,000", "USD 45,000" or "350,000 PHP".

    Thousands separators are stripped. A 3-letter code or a known symbol sets
    the currency, otherwise ``default_currency`` is used. Returns None when the
    text holds no digit group.
    """
    if not text:
        return None

    m = PRICE_PATTERN.search(text.replace("\xa0", " "))
    if not m:
        return None

    amount = Decimal(m.group("amount").replace(",", ""))

    currency = None
    for token in (m.group("code"), m.group("symbol"), m.group("suffix")):
        if token:
            currency = CURRENCY_SYMBOLS.get(token, token)
            break

    return ParsedPrice(amount=amount, currency=currency or default_currency)


def parse_year(title: Optional[str]) -> Optional[int]:
    """First 4-digit number starting with 19 or 20.

    An unrelated number in the title (a model code, a phone fragment) is
    picked up as well; callers range-check the result.
    """
    if not title:
        return None
    m = YEAR_PATTERN.search(title)
    return int(m.group(0)) if m else None


def parse_mileage(title: Optional[str]) -> Optional[str]:
    """Mileage as written, e.g. "50,000 km" or "80k"; not unit-normalized."""
    if not title:
        return None
    m = MILEAGE_PATTERN.search(title)
    return m.group(0) if m else None


def extract_listing_id(url: Optional[str]) -> Optional[str]:
    """Numeric marketplace id from a ``/item/<id>`` URL."""
    if not url:
        return None
    m = LISTING_ID_PATTERN.search(url)
    return m.group(1) if m else None


def canonical_listing_url(href: str, base_url: str) -> str:
    """Absolute listing URL without query string or fragment."""
    parsed = urlparse(urljoin(base_url, href))
    return urlunparse((parsed.scheme, parsed.netloc, parsed.path, "", "", ""))


def looks_like_price(text: str) -> bool:
    return bool(PRICE_PREFIX_PATTERN.match(text) or PRICE_SUFFIX_PATTERN.match(text))


def classify_fragments(texts: Iterable[str], min_title_length: int = 10) -> FragmentClassification:
    """
    Pick the price and title out of the text fragments of one listing card.

    The price is the first fragment that starts or ends with a currency
    marker next to a number. The title is the first fragment longer than
    ``min_title_length`` that is not the price, is not a breadcrumb and does
    not start with a currency marker.
    """
    fragments = [clean_text(t) for t in texts]
    fragments = [t for t in fragments if t]

    price = next((t for t in fragments if looks_like_price(t)), None)
    title = next(
        (
            t for t in fragments
            if len(t) > min_title_length
            and BREADCRUMB_MARKER not in t
            and not CURRENCY_PREFIX_PATTERN.match(t)
            and t != price
        ),
        None,
    )
    return FragmentClassification(price=price, title=title)
