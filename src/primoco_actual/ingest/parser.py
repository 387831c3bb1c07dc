"""
Primoco CSV record parser.

Splits the normalized text into rows, repairs text fields, parses dates and
amounts and hands each surviving row to the domain mapper.

Row-level problems (bad date, future date, bad amount, unknown entry type,
missing account) are logged and the row is skipped; the scan always
continues. Field-level repair problems never drop a row.
"""

import csv
import html
import io
import logging
import re
from collections.abc import Iterator, Mapping
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from ..config import DEFAULT_DATE_FORMAT
from ..schemas.dedupe import ImportIdentityIndex, compute_row_fingerprint
from ..schemas.transaction import EntryKind, ParseResult
from .mapper import map_row
from .normalizer import NormalizedSource

logger = logging.getLogger(__name__)


class Column:
    """Primoco export column names (after trimming)."""

    DATE = "Date"
    ENTRY_TYPE = "Entry Type"
    VALUE = "Value"
    CATEGORY = "Category"
    PERSON = "Person"
    ACCOUNT = "Account"
    COUNTER_ACCOUNT = "Counter Account"
    GROUP = "Group"
    NOTE = "Note"


# Text columns run through repair_text
TEXT_COLUMNS = (
    Column.CATEGORY,
    Column.PERSON,
    Column.ACCOUNT,
    Column.COUNTER_ACCOUNT,
    Column.GROUP,
    Column.NOTE,
)

# UTF-8 sequences that Primoco stores as if they were Latin-1 text
DEFAULT_ENCODING_FIXES: dict[str, str] = {
    "Ã¤": "ä",
    "Ã¶": "ö",
    "Ã¼": "ü",
    "ÃŸ": "ß",
    "Ã„": "Ä",
    "Ã–": "Ö",
    "Ãœ": "Ü",
    "Ã©": "é",
    "Ã¨": "è",
    "Ã´": "ô",
    "Ãª": "ê",
    "Ã€": "À",
    "Ã¡": "á",
    "Ã¢": "â",
    "Ã£": "ã",
    "Ã±": "ñ",
    "Ã§": "ç",
    "Ã³": "ó",
    "Ãº": "ú",
    "Ã»": "û",
    "Ã®": "î",
    "Ã¯": "ï",
    "â‚¬": "€",
}

_CENT = Decimal("100")

# Entity whose ";" terminator was read as a delimiter, e.g. "Essen &amp"
_SPLIT_ENTITY = re.compile(r"&#?\w+$")


def build_encoding_fixes(extra: Mapping[str, str] | None = None) -> dict[str, str]:
    """Default fix table extended (or overridden) by user entries."""
    fixes = dict(DEFAULT_ENCODING_FIXES)
    if extra:
        fixes.update(extra)
    return fixes


def repair_text(text: str | None, fixes: Mapping[str, str] | None = None) -> str:
    """
    Repair a single text field.

    1. Replace known double-encoded sequences (e.g. "Ã¤" → "ä")
    2. Decode HTML entities (e.g. "&gt;" → ">") and trim

    If repair fails the trimmed original text is returned.
    """
    if not text:
        return ""
    if fixes is None:
        fixes = DEFAULT_ENCODING_FIXES

    try:
        fixed = text
        for wrong, correct in fixes.items():
            fixed = fixed.replace(wrong, correct)
        return html.unescape(fixed.strip()).strip()
    except (TypeError, ValueError) as e:
        logger.warning(f"Error decoding text {text!r}: {e}")
        return text.strip()


def repair_fields(row: Mapping[str, str], fixes: Mapping[str, str] | None = None) -> dict[str, str]:
    """Repair every text column of a row; absent columns become empty strings."""
    return {column: repair_text(row.get(column), fixes) for column in TEXT_COLUMNS}


def parse_date(value: str | None, date_format: str = DEFAULT_DATE_FORMAT) -> date:
    """
    Parse a source date (``dd.MM.yyyy`` by default).

    Raises:
        ValueError: If the value does not match the format
    """
    if value is None:
        raise ValueError("date is missing")
    return datetime.strptime(value.strip(), date_format).date()


def is_future(value: date, now: datetime | None = None) -> bool:
    """True if the start of ``value`` lies strictly after ``now``."""
    now = now or datetime.now()
    return datetime.combine(value, time.min) > now


def parse_amount(value: str | None) -> int:
    """
    Convert a comma-decimal amount to signed minor units.

    Uses exact Decimal arithmetic and rounds half away from zero:
    "12,34" → 1234, "-0,01" → -1, "1,005" → 101, "-1,005" → -101.
    Dots are thousands separators when a comma is present ("1.234,56").
    An empty value is 0.

    Raises:
        ValueError: If the value is not a number
    """
    text = (value or "").strip().replace("\xa0", "").replace(" ", "")
    if not text:
        return 0
    if "," in text:
        text = text.replace(".", "").replace(",", ".")

    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}") from None
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")

    return int((amount * _CENT).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _rejoin_split_entities(values: list[str], width: int, delimiter: str) -> list[str]:
    """
    Glue HTML entities that the reader split at their terminating ``;``.

    Primoco writes entities such as ``&amp;`` unquoted, so with a ``;``
    delimiter "Essen &amp; Trinken" arrives as two values. While the row is
    wider than the header, the first value ending in an unterminated entity
    is joined to its successor with the delimiter restored.
    """
    values = list(values)
    while len(values) > width:
        for index in range(len(values) - 1):
            if _SPLIT_ENTITY.search(values[index]):
                values[index : index + 2] = [values[index] + delimiter + values[index + 1]]
                break
        else:
            break
    return values


def iter_raw_rows(source: NormalizedSource) -> Iterator[dict[str, str]]:
    """
    Yield raw rows as ``{trimmed header: raw text}`` in column order.

    Values split inside an HTML entity are joined back first, so the row
    (and therefore its fingerprint) holds the original text. Short rows only
    carry the columns they have; remaining surplus values are keyed
    ``_<index>``. Lines with no content are skipped.
    """
    reader = csv.reader(io.StringIO(source.body(), newline=""), delimiter=source.delimiter)
    header = next(reader, None)
    if header is None:
        return
    fieldnames = [name.strip() for name in header]

    for values in reader:
        if not any(value.strip() for value in values):
            continue
        values = _rejoin_split_entities(values, len(fieldnames), source.delimiter)
        row: dict[str, str] = {}
        for index, value in enumerate(values):
            key = fieldnames[index] if index < len(fieldnames) else f"_{index}"
            row[key] = value
        yield row


def parse_source(
    source: NormalizedSource,
    *,
    date_format: str = DEFAULT_DATE_FORMAT,
    encoding_fixes: Mapping[str, str] | None = None,
    force_duplicates: bool = False,
    now: datetime | None = None,
) -> ParseResult:
    """
    Parse a normalized source into transactions and discovered entities.

    Args:
        source: Normalized source text
        date_format: strptime format of the Date column
        encoding_fixes: Mojibake fix table (defaults to DEFAULT_ENCODING_FIXES)
        force_duplicates: Give exact duplicate rows distinct import identities
        now: Reference time for the future-date check (defaults to now)

    Returns:
        ParseResult with transactions, account/category sets, identity index
        and skip counters
    """
    now = now or datetime.now()
    fixes = encoding_fixes if encoding_fixes is not None else DEFAULT_ENCODING_FIXES
    result = ParseResult(
        identities=ImportIdentityIndex(force_duplicates=force_duplicates),
        encoding=source.encoding,
        delimiter=source.delimiter,
    )

    for row in iter_raw_rows(source):
        raw_date = row.get(Column.DATE)
        if raw_date is None or not raw_date.strip():
            result.dropped_rows += 1
            continue

        try:
            tx_date = parse_date(raw_date, date_format)
        except ValueError:
            logger.warning(f"Invalid date format detected: {raw_date!r}, skipping row")
            result.invalid_dates += 1
            continue

        if is_future(tx_date, now):
            logger.warning(f"Skipping future transaction: {raw_date}")
            result.future_dates += 1
            continue

        try:
            kind = EntryKind.from_source(row.get(Column.ENTRY_TYPE))
        except ValueError as e:
            logger.warning(f"{e}, skipping row dated {raw_date}")
            result.invalid_kinds += 1
            continue

        try:
            amount = parse_amount(row.get(Column.VALUE))
        except ValueError as e:
            logger.warning(f"{e}, skipping row dated {raw_date}")
            result.invalid_amounts += 1
            continue

        fields = repair_fields(row, fixes)
        if not fields[Column.ACCOUNT]:
            logger.warning(f"Row dated {raw_date} has no account, skipping")
            result.missing_accounts += 1
            continue

        # Identity comes from the row exactly as read, before repair
        identity = result.identities.register(compute_row_fingerprint(row), row)

        result.transactions.append(
            map_row(
                tx_date,
                amount,
                kind,
                identity,
                category=fields[Column.CATEGORY],
                account_name=fields[Column.ACCOUNT],
                counter_account_name=fields[Column.COUNTER_ACCOUNT],
                person=fields[Column.PERSON],
                group=fields[Column.GROUP],
                notes=fields[Column.NOTE],
                accounts=result.accounts,
                categories=result.categories,
            )
        )

    logger.info(f"Total Accounts Found: {len(result.accounts)}")
    logger.info(f"Total Categories Found: {len(result.categories)}")
    logger.info(f"Total Transactions Found: {len(result.transactions)}")
    if result.skipped:
        logger.info(f"Rows skipped: {result.skipped}")

    return result
