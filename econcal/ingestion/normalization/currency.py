"""
Currency resolution for feed items.

The Myfxbook feed prefixes most titles with the currency code
("USD - Nonfarm Payrolls"); the rest only identify the economy through the
country slug in the item link.
"""

import re
from urllib.parse import urlparse

COUNTRY_TO_CURRENCY: dict[str, str] = {
    "united-states": "USD",
    "euro-area": "EUR",
    "eurozone": "EUR",
    "united-kingdom": "GBP",
    "japan": "JPY",
    "australia": "AUD",
    "new-zealand": "NZD",
    "canada": "CAD",
    "switzerland": "CHF",
    "china": "CNY",
    "germany": "EUR",
    "france": "EUR",
    "italy": "EUR",
    "spain": "EUR",
    "netherlands": "EUR",
    "greece": "EUR",
    "portugal": "EUR",
    "ireland": "EUR",
    "austria": "EUR",
    "belgium": "EUR",
    "finland": "EUR",
    "croatia": "EUR",
    "turkey": "TRY",
    "south-africa": "ZAR",
    "brazil": "BRL",
    "mexico": "MXN",
    "india": "INR",
    "south-korea": "KRW",
    "hong-kong": "HKD",
    "singapore": "SGD",
    "russia": "RUB",
    "poland": "PLN",
    "sweden": "SEK",
    "norway": "NOK",
    "denmark": "DKK",
    "iceland": "ISK",
    "czech-republic": "CZK",
    "hungary": "HUF",
    "romania": "RON",
    "bulgaria": "BGN",
    "serbia": "RSD",
    "albania": "ALL",
    "ukraine": "UAH",
    "kazakhstan": "KZT",
    "kyrgyzstan": "KGS",
    "mongolia": "MNT",
    "indonesia": "IDR",
    "malaysia": "MYR",
    "philippines": "PHP",
    "thailand": "THB",
    "vietnam": "VND",
    "taiwan": "TWD",
    "macau": "MOP",
    "brunei": "BND",
    "sri-lanka": "LKR",
    "israel": "ILS",
    "saudi-arabia": "SAR",
    "uae": "AED",
    "egypt": "EGP",
    "nigeria": "NGN",
    "angola": "AOA",
    "malawi": "MWK",
    "mauritius": "MUR",
    "cape-verde": "CVE",
    "libya": "LYD",
    "argentina": "ARS",
    "chile": "CLP",
    "colombia": "COP",
    "peru": "PEN",
    "bolivia": "BOB",
    "ecuador": "USD",
    "panama": "PAB",
    "uruguay": "UYU",
    "venezuela": "VES",
}

TITLE_CURRENCY_PATTERN = re.compile(r"^([A-Z]{3})\s*-\s*(.+)$")


def currency_for_country_slug(slug: str) -> str | None:
    """Look up the currency of a country slug such as ``united-kingdom``."""
    return COUNTRY_TO_CURRENCY.get((slug or "").strip().lower())


def split_title(title: str) -> tuple[str | None, str]:
    """
    Split a "USD - Event Name" title.

    Returns:
        (currency or None, event name without the prefix)
    """
    text = (title or "").strip()
    match = TITLE_CURRENCY_PATTERN.match(text)
    if match:
        return match.group(1), match.group(2).strip()
    return None, text


def extract_currency(title: str, link: str | None) -> str:
    """
    Resolve the currency of a feed item.

    The title prefix wins; otherwise the first link path segment that is a
    known country slug. Returns "" when neither resolves.
    """
    prefix, _ = split_title(title)
    if prefix:
        return prefix

    path = urlparse(link or "").path
    for part in path.split("/"):
        currency = currency_for_country_slug(part)
        if currency:
            return currency
    return ""
