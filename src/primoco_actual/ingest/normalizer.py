"""
Source text normalization.

Primoco exports arrive in whatever encoding the exporting machine used and
may start with an Excel-style ``sep=<char>`` directive. This module turns the
raw bytes into clean Unicode text plus the delimiter to parse it with.

Detection order (first match wins):
1. UTF-16 byte order mark (LE or BE)
2. UTF-8 byte order mark (stripped)
3. Bytes that validate as UTF-8
4. Windows-1252 (Western single-byte code page), Latin-1 for bytes
   cp1252 leaves undefined
"""

import codecs
import logging
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_DELIMITER = ";"
SEPARATOR_DIRECTIVE = "sep="


class SourceReadError(Exception):
    """Raised when the source file cannot be read."""

    pass


@dataclass(frozen=True)
class NormalizedSource:
    """Decoded source text and how to split it."""

    text: str
    encoding: str
    delimiter: str = DEFAULT_DELIMITER
    skip_first_line: bool = False

    def body(self) -> str:
        """Text with the ``sep=`` directive line removed (if any)."""
        if not self.skip_first_line:
            return self.text
        _, _, rest = self.text.partition("\n")
        return rest


def detect_encoding(data: bytes) -> str:
    """
    Detect the encoding of a byte buffer.

    Returns:
        Python codec name: "utf-16", "utf-8-sig", "utf-8" or "cp1252"
    """
    if data.startswith(codecs.BOM_UTF16_LE) or data.startswith(codecs.BOM_UTF16_BE):
        return "utf-16"
    if data.startswith(codecs.BOM_UTF8):
        return "utf-8-sig"
    try:
        data.decode("utf-8")
    except UnicodeDecodeError:
        return "cp1252"
    return "utf-8"


def decode_bytes(data: bytes, encoding: str) -> tuple[str, str]:
    """
    Decode bytes with the detected encoding.

    Returns:
        Tuple of (text, encoding actually used)
    """
    if encoding == "cp1252":
        try:
            return data.decode("cp1252"), "cp1252"
        except UnicodeDecodeError:
            # cp1252 leaves 0x81, 0x8D, 0x8F, 0x90, 0x9D undefined
            logger.debug("Bytes undefined in cp1252, decoding as latin-1")
            return data.decode("latin-1"), "latin-1"
    return data.decode(encoding), encoding


def detect_delimiter(text: str) -> tuple[str, bool]:
    """
    Detect the field delimiter from a ``sep=<char>`` first line.

    Returns:
        Tuple of (delimiter, skip_first_line)
    """
    first_line = text.split("\n", 1)[0].rstrip("\r")
    if not first_line.startswith(SEPARATOR_DIRECTIVE):
        return DEFAULT_DELIMITER, False

    value = first_line[len(SEPARATOR_DIRECTIVE):]
    # Keep whitespace delimiters like tab, otherwise ignore padding
    delimiter = value.strip() or value
    if len(delimiter) != 1:
        logger.warning(
            "Ignoring invalid separator directive %r, using '%s'",
            first_line,
            DEFAULT_DELIMITER,
        )
        return DEFAULT_DELIMITER, True
    return delimiter, True


def decode_source(data: bytes) -> NormalizedSource:
    """
    Normalize a raw byte buffer into Unicode text and delimiter settings.

    Args:
        data: Raw file contents

    Returns:
        NormalizedSource with text, encoding, delimiter and skip flag
    """
    encoding = detect_encoding(data)
    text, encoding = decode_bytes(data, encoding)
    logger.info(f"Detected file encoding: {encoding}")

    delimiter, skip_first_line = detect_delimiter(text)
    if skip_first_line:
        logger.info(f"Detected CSV separator: '{delimiter}'")
    else:
        logger.info(f"No 'sep=' row found, using default separator: '{delimiter}'")

    return NormalizedSource(
        text=text,
        encoding=encoding,
        delimiter=delimiter,
        skip_first_line=skip_first_line,
    )


def load_source(path: Path) -> NormalizedSource:
    """
    Read and normalize a source file.

    Raises:
        SourceReadError: If the file cannot be read
    """
    logger.info(f"Reading CSV from: {path}")
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        logger.error(f"Error reading file {path}: {e}")
        raise SourceReadError(f"Cannot read source file {path}: {e}") from e
    return decode_source(data)
