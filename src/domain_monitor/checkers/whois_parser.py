"""
WHOIS response normalization and expiry date extraction.

WHOIS has no fixed schema, so the expiry date is looked up by an ordered
list of strategies. Each strategy is a pure function returning a date or
None; the first date found wins.
"""

import logging
import re
from datetime import date, datetime
from typing import Any, Callable, Iterable, List, Optional, Tuple

from dateutil import parser as date_parser
from whois.parser import WhoisEntry

logger = logging.getLogger(__name__)


# Tried in order; latin-1 is left out because it accepts any byte sequence
ENCODING_CANDIDATES = ('utf-8', 'gb18030', 'shift_jis', 'euc-kr')

# Registrar-specific keys that python-whois may produce instead of expiration_date
ALTERNATE_EXPIRY_FIELDS = (
    'expiry_date',
    'expires',
    'expires_at',
    'expiry',
    'paid_till',
    'registry_expiry_date',
    'registrar_registration_expiration_date',
)

# Expiry labels, most specific first
EXPIRY_LABELS = (
    r'registry\s+expiry\s+date',
    r'registrar\s+registration\s+expiration\s+date',
    r'registrar\s+expir(?:y|ation)\s+date',
    r'expir(?:y|ation|es)\s*(?:date|time|on)?',
    r'renewal\s+date',
    r'paid[-\s]till',
    r'valid\s+until',
    r'expires?\s+(?:on|at)',
    r'到期(?:时间|日期)',
    r'过期时间',
    r'過期(?:時間|日)',
    r'有効期限',
    r'만료일',
    r'ablaufdatum',
    r"date\s+d'expiration",
    r'data\s+de\s+expira(?:ção|cao)',
    r'fecha\s+de\s+(?:vencimiento|expiración)',
)

EXPIRY_PATTERNS = [
    re.compile(
        rf'^[ \t]*(?:\[(?:{label})\][ \t]*|(?:{label})[ \t]*[:：][ \t]*)(\S.*?)[ \t]*$',
        re.IGNORECASE | re.MULTILINE,
    )
    for label in EXPIRY_LABELS
]

DATE_FORMATS = (
    '%Y-%m-%d',
    '%Y-%m-%d %H:%M:%S',
    '%Y-%m-%dT%H:%M:%S',
    '%Y-%m-%dT%H:%M:%SZ',
    '%Y-%m-%dT%H:%M:%S%z',
    '%Y-%m-%d %H:%M:%S%z',
    '%Y/%m/%d',
    '%Y/%m/%d %H:%M:%S',
    '%d-%m-%Y',
    '%d/%m/%Y',
    '%m/%d/%Y',
    '%d.%m.%Y',
    '%Y.%m.%d',
    '%Y. %m. %d.',
    '%d-%b-%Y',
    '%d %b %Y',
    '%b %d %Y',
    '%B %d, %Y',
    '%Y年%m月%d日',
)

_PARENTHETICAL = re.compile(r'\([^)]*\)')
_FRACTION = re.compile(r'(\d{2}:\d{2}:\d{2})[.,]\d+')
_TRAILING_TZ = re.compile(r'\s+\[?(?:[A-Z]{2,5}|UTC[+-]\d{1,2})\]?$')
_YEAR = re.compile(r'\d{4}')


def decode_response(raw: bytes) -> str:
    """
    Decode a raw WHOIS response.

    Args:
        raw: Bytes received from the WHOIS server

    Returns:
        Text decoded with the first candidate encoding that validates, or
        UTF-8 with replacement characters if none does
    """
    for encoding in ENCODING_CANDIDATES:
        try:
            return raw.decode(encoding)
        except UnicodeDecodeError:
            continue
    logger.debug("No candidate encoding matched, decoding with replacement")
    return raw.decode('utf-8', errors='replace')


def clean_date_string(value: str) -> str:
    """Remove remarks, sub-second fractions and trailing timezone names."""
    cleaned = _PARENTHETICAL.sub(' ', value)
    cleaned = _FRACTION.sub(r'\1', cleaned)
    cleaned = re.sub(r'\s+', ' ', cleaned).strip()
    cleaned = _TRAILING_TZ.sub('', cleaned)
    return cleaned.strip()


def parse_date_string(value: str) -> Optional[date]:
    """
    Parse a free-text WHOIS date.

    Tries the explicit formats first and falls back to dateutil's generic
    parser.

    Args:
        value: Date text as found after a WHOIS label

    Returns:
        The parsed date or None if the text is not a date
    """
    cleaned = clean_date_string(value)
    if not cleaned:
        return None

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue

    # Without a four-digit year dateutil happily turns any number into a date
    if not _YEAR.search(cleaned):
        return None

    try:
        return date_parser.parse(cleaned).date()
    except (ValueError, OverflowError):
        return None


def coerce_date(value: Any) -> Optional[date]:
    """
    Normalize a python-whois field value to a date.

    Args:
        value: datetime, date, string, or a list of those

    Returns:
        The first usable date or None
    """
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        for item in value:
            result = coerce_date(item)
            if result:
                return result
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return parse_date_string(value)
    return None


class WhoisDocument:
    """
    A decoded WHOIS response plus its lazily parsed python-whois entry.

    Attributes:
        domain: The queried domain
        text: Decoded response text
    """

    def __init__(self, domain: str, text: str):
        self.domain = domain
        self.text = text
        self._entry = None
        self._entry_loaded = False

    @property
    def entry(self) -> Optional[WhoisEntry]:
        """Registry-specific parse of the text, None if python-whois rejects it."""
        if not self._entry_loaded:
            self._entry_loaded = True
            try:
                self._entry = WhoisEntry.load(self.domain, self.text)
            except Exception as e:
                logger.debug(f"WHOIS grammar parser failed for {self.domain}: {e}")
                self._entry = None
        return self._entry


def from_parser_field(document: WhoisDocument) -> Optional[date]:
    """Use the expiration_date field of the registry grammar."""
    entry = document.entry
    if entry is None:
        return None
    return coerce_date(entry.get('expiration_date'))


def from_alternate_fields(document: WhoisDocument) -> Optional[date]:
    """Look at registrar-specific field names."""
    entry = document.entry
    if entry is None:
        return None
    for name in ALTERNATE_EXPIRY_FIELDS:
        result = coerce_date(entry.get(name))
        if result:
            return result
    return None


def from_text_patterns(document: WhoisDocument) -> Optional[date]:
    """Scan the raw text for known expiry labels."""
    for pattern in EXPIRY_PATTERNS:
        for match in pattern.finditer(document.text):
            date_string = match.group(1)
            logger.debug(f"Found potential expiry date for {document.domain}: '{date_string}'")
            result = parse_date_string(date_string)
            if result:
                return result
    return None


ExpiryStrategy = Callable[[WhoisDocument], Optional[date]]

EXPIRY_STRATEGIES: List[Tuple[str, ExpiryStrategy]] = [
    ('parser', from_parser_field),
    ('alternate_fields', from_alternate_fields),
    ('text_patterns', from_text_patterns),
]


def extract_expiry_date(
    domain: str,
    text: str,
    strategies: Optional[Iterable[Tuple[str, ExpiryStrategy]]] = None
) -> Optional[date]:
    """
    Run the extraction strategies in order until one yields a date.

    Args:
        domain: The queried domain
        text: Decoded WHOIS response
        strategies: Override of the default strategy list

    Returns:
        Expiry date or None when every strategy came up empty
    """
    document = WhoisDocument(domain, text)
    for name, strategy in strategies or EXPIRY_STRATEGIES:
        try:
            result = strategy(document)
        except Exception as e:
            logger.debug(f"Expiry strategy '{name}' failed for {domain}: {e}")
            continue
        if result:
            logger.debug(f"Expiry strategy '{name}' succeeded for {domain}: {result}")
            return result

    logger.debug(f"All expiry strategies failed for {domain}")
    if len(text) > 500:
        logger.debug(f"WHOIS response preview: {text[:500]}...")
    return None


def days_until_expiry(expiry_date: date, today: Optional[date] = None) -> int:
    """
    Whole days between today and the expiry date.

    Args:
        expiry_date: Extracted expiry date
        today: Reference date (defaults to the current local date)

    Returns:
        Day difference; negative when the domain has already expired
    """
    return (expiry_date - (today or date.today())).days
