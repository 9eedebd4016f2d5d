"""
Value parsers meant to be used as a field's ``from`` getter.

    fields = {
        "birthdate": {"type": "date", "from": parse.date("Birthday", "M/D/YY")},
    }
"""

from __future__ import annotations

import re
from datetime import date as _date, datetime
from functools import lru_cache
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from modelsuite.utils.logging_utils import get_logger

# moment.js format tokens -> strptime directives; longest tokens first
_TOKENS = {
    "YYYY": "%Y",
    "YY": "%y",
    "MMMM": "%B",
    "MMM": "%b",
    "MM": "%m",
    "M": "%m",
    "dddd": "%A",
    "ddd": "%a",
    "Do": "%d",
    "DD": "%d",
    "D": "%d",
    "HH": "%H",
    "H": "%H",
    "hh": "%I",
    "h": "%I",
    "mm": "%M",
    "m": "%M",
    "ss": "%S",
    "s": "%S",
    "SSS": "%f",
    "A": "%p",
    "a": "%p",
    "ZZ": "%z",
    "Z": "%z",
}

_TOKEN_RE = re.compile(r"\[[^\]]*\]|" + "|".join(sorted(_TOKENS, key=len, reverse=True)))

# "12th" -> "12"; applied to values whose format uses the Do token
_ORDINAL_RE = re.compile(r"(\d+)(?:st|nd|rd|th)\b", re.IGNORECASE)

Format = Union[str, Sequence[str]]


@lru_cache(maxsize=128)
def moment_to_strptime(fmt: str) -> str:
    """Translate a moment-style format such as ``D/M/YY`` into ``%d/%m/%y``."""

    out = []
    pos = 0
    for match in _TOKEN_RE.finditer(fmt):
        out.append(fmt[pos:match.start()].replace("%", "%%"))
        token = match.group(0)
        if token.startswith("["):
            out.append(token[1:-1].replace("%", "%%"))
        else:
            out.append(_TOKENS[token])
        pos = match.end()
    out.append(fmt[pos:].replace("%", "%%"))
    return "".join(out)


@lru_cache(maxsize=128)
def _uses_ordinal(fmt: str) -> bool:
    return any(match.group(0) == "Do" for match in _TOKEN_RE.finditer(fmt))


def parse_datetime(value: Any, fmt: Format) -> Optional[datetime]:
    """Parse ``value`` against one or more moment-style formats; ``None`` if none match."""

    if isinstance(value, datetime):
        return value
    if isinstance(value, _date):
        return datetime(value.year, value.month, value.day)
    if value is None:
        return None

    text = str(value).strip()
    if not text:
        return None

    formats = [fmt] if isinstance(fmt, str) else list(fmt)
    for candidate in formats:
        try:
            candidate_text = _ORDINAL_RE.sub(r"\1", text) if _uses_ordinal(candidate) else text
            return datetime.strptime(candidate_text, moment_to_strptime(candidate))
        except ValueError:
            continue
    return None


def date(key: Optional[str] = None, fmt: Format = "YYYY-MM-DD", default: Any = None) -> Callable:
    """
    Return a date parsing getter.

    ``key`` is the input key to read; when omitted the getter reads the
    name of the field it is attached to. Values that fail to parse yield
    ``default``.

        parse = date("date", "M/D/YY")
        parse({"date": "6/12/81"})                      # datetime(1981, 6, 12)
        date(None, "YYYY-MM-DD")({"d": "1981-06-12"}, "d")  # datetime(1981, 6, 12)
    """

    def parse_date(record: Mapping, name: Optional[str] = None):
        source = key or name
        value = record.get(source) if source else None
        parsed = parse_datetime(value, fmt)
        if parsed is None:
            if value:
                get_logger("transform").debug("Unparseable date key=%s value=%r format=%s", source, value, fmt)
            return default
        return parsed

    return parse_date
