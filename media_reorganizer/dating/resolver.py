"""
Filename/path date resolution.

A fixed cascade of pattern rules is tried against the bare filename (without
extension) and then against the full path. Rules are ordered most specific
first so that, e.g., 'YYYY_MM' never swallows a 'YYYY_MM_DD'. The first rule
whose match survives range validation wins.
"""
import logging
import re
from dataclasses import dataclass
from datetime import time
from pathlib import PurePosixPath
from typing import Callable, List, Optional, Sequence

from .. import config
from ..exceptions import UnparseableDateError
from ..models import ParsedDate

Builder = Callable[[re.Match, str], ParsedDate]


@dataclass(frozen=True)
class DateRule:
    name: str
    pattern: re.Pattern
    build: Builder

    def apply(self, text: str, source_text: str) -> Optional[ParsedDate]:
        """Returns a ParsedDate, or None if the rule does not match or the match is out of range."""
        m = self.pattern.search(text)
        if not m:
            return None
        try:
            return self.build(m, source_text)
        except ValueError as e:
            logging.debug(f"Rule '{self.name}' matched {m.group(0)!r} but was rejected: {e}")
            return None


def infer_century(yy: int) -> int:
    """Two-digit year -> four-digit year using the fixed cutover."""
    return 1900 + yy if yy > config.CENTURY_CUTOVER else 2000 + yy


# --- Builders ---

def _date_time(m: re.Match, src: str) -> ParsedDate:
    y, mo, d, hh, mm, ss = (int(g) for g in m.groups())
    return ParsedDate(y, mo, d, time_of_day=time(hh, mm, ss), source_text=src)


def _full_date(m: re.Match, src: str) -> ParsedDate:
    y, mo, d = (int(g) for g in m.groups())
    return ParsedDate(y, mo, d, source_text=src)


def _year_month(m: re.Match, src: str) -> ParsedDate:
    y, mo = (int(g) for g in m.groups())
    return ParsedDate(y, mo, 1, source_text=src)


def _short_date(m: re.Match, src: str) -> ParsedDate:
    yy, mo, d = (int(g) for g in m.groups())
    return ParsedDate(infer_century(yy), mo, d, source_text=src)


def _short_year_month(m: re.Match, src: str) -> ParsedDate:
    yy, mo = (int(g) for g in m.groups())
    return ParsedDate(infer_century(yy), mo, 1, source_text=src)


def _year_only(m: re.Match, src: str) -> ParsedDate:
    return ParsedDate(int(m.group(1)), 1, 1, source_text=src)


def _rule(name: str, regex: str, build: Builder) -> DateRule:
    return DateRule(name, re.compile(regex, re.ASCII), build)


DEFAULT_RULES: List[DateRule] = [
    _rule("date_time", r'(\d{4})-(\d{2})-(\d{2})\s+(\d{2})\.(\d{2})\.(\d{2})', _date_time),
    _rule("hyphen_date", r'(\d{4})-(\d{2})-(\d{2})', _full_date),
    _rule("underscore_date", r'(\d{4})_(\d{2})_(\d{2})', _full_date),
    _rule("compact_date", r'^(\d{4})(\d{2})(\d{2})(?:\D|$)', _full_date),
    _rule("year_month", r'(\d{4})_(\d{2})(?:_|\D|$)', _year_month),
    _rule("short_date", r'^(\d{2})(\d{2})(\d{2})(?:\D|$)', _short_date),
    _rule("short_year_month", r'^(\d{2})(\d{2})(?:\D|$)', _short_year_month),
    _rule("year_segment", r'[/\\](\d{4})(?:_|/|\\)', _year_only),
    _rule("year_and_before", r'(\d{4})\s+and\s+before', _year_only),
    _rule("leading_year", r'(?:^|[/\\])(\d{4})[A-Za-z_]', _year_only),
]


class DateResolver:
    def __init__(self, rules: Optional[Sequence[DateRule]] = None):
        self.rules = list(rules) if rules is not None else DEFAULT_RULES

    def resolve(self, path: str) -> Optional[ParsedDate]:
        """
        Best-guess date for a filename or path, or None when nothing matches.

        The filename (minus extension) is searched first with every rule,
        then the full path string.
        """
        p = PurePosixPath(path)
        base = p.name

        for text in (p.stem, path):
            for rule in self.rules:
                parsed = rule.apply(text, base)
                if parsed is not None:
                    return parsed
        return None

    def resolve_or_raise(self, path: str) -> ParsedDate:
        parsed = self.resolve(path)
        if parsed is None:
            raise UnparseableDateError(f"could not parse date from filename: {path}")
        return parsed


# --- Filename synthesis ---

_LEADING_DATE = re.compile(r'^\d{4}[-_]?\d{0,2}[-_]?\d{0,2}_?', re.ASCII)
_LEADING_SHORT_DATE = re.compile(r'^\d{6}_?', re.ASCII)


def clean_description(description: str) -> str:
    """Drops a leading date from the description so it isn't repeated after the new prefix."""
    desc = _LEADING_DATE.sub('', description)
    desc = _LEADING_SHORT_DATE.sub('', desc)
    desc = desc.strip().replace(' ', '_')
    return desc or config.DEFAULT_DESCRIPTION


def standardized_filename(parsed: ParsedDate, description: str, ext: str) -> str:
    """
    YYYY-MM-DD_description.ext, or YYYY-MM-DD_HHMMSS_description.ext when the
    date carries a real (non-midday) time of day.
    """
    desc = clean_description(description)
    date_part = f"{parsed.year:04d}-{parsed.month:02d}-{parsed.day:02d}"
    if parsed.has_explicit_time:
        return f"{date_part}_{parsed.time_of_day.strftime('%H%M%S')}_{desc}{ext}"
    return f"{date_part}_{desc}{ext}"
