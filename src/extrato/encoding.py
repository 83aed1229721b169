import codecs
import logging
from pathlib import Path

import chardet

logger = logging.getLogger(__name__)

UTF8 = "utf-8"
LATIN1 = "latin-1"
CP1252 = "cp1252"


def _fold(name: str | None) -> str:
    """Map a chardet guess onto the codecs Brazilian exports actually use."""
    name = (name or "").lower().replace("_", "-")
    if not name or name.startswith("utf") or name == "ascii":
        return UTF8
    if name.startswith("iso-8859") or name in ("latin-1", "latin1"):
        return LATIN1
    # Windows-125x and other single-byte guesses
    return CP1252


def detect_encoding(data: bytes) -> str:
    """Return "utf-8", "latin-1" or "cp1252" for a raw statement buffer."""
    if data.startswith(codecs.BOM_UTF8):
        return UTF8
    try:
        data.decode(UTF8)
        return UTF8
    except UnicodeDecodeError:
        pass
    guess = chardet.detect(data)
    encoding = _fold(guess.get("encoding"))
    logger.debug("chardet guessed %s (%.2f), using %s", guess.get("encoding"), guess.get("confidence") or 0, encoding)
    return encoding


def decode_bytes(data: bytes, encoding: str | None = None) -> str:
    encoding = encoding or detect_encoding(data)
    if data.startswith(codecs.BOM_UTF8):
        data = data[len(codecs.BOM_UTF8):]
    try:
        return data.decode(encoding)
    except UnicodeDecodeError:
        logger.warning("Could not decode as %s, replacing invalid bytes", encoding)
        return data.decode(encoding, errors="replace")


def read_text(file_path: Path) -> str:
    return decode_bytes(Path(file_path).read_bytes())
