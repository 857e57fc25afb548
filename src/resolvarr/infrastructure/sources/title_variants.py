"""Title variant generation for fuzzy file matching.

Pure transformation logic, no I/O. The output order is part of the
contract: callers treat the first variant that matches as authoritative.
"""

from __future__ import annotations

import re

from unidecode import unidecode as _unidecode

_PAREN_RE = re.compile(r"\s*[\(\[][^\)\]]*[\)\]]")
_TRAILING_YEAR_RE = re.compile(r"\s+(?:19|20)\d{2}$")
# "(US)"/"(UK)" in any case, or a bare uppercase "US"/"UK" word.
_REGION_RE = re.compile(r"\s*(?:\((?i:US|UK)\)|(?<=\s)(?:US|UK))\s*$")
_APOSTROPHE_RE = re.compile(r"['‘’`]")
_POSSESSIVE_RE = re.compile(r"(\w)['’]s\b", re.IGNORECASE)
_PUNCT_RE = re.compile(r"[^\w\s]")
_SEPARATOR_RE = re.compile(r"[._\-]+")

# Applied in order.
_ABBREVIATIONS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\s*&\s*"), " and "),
    (re.compile(r"\bvs\.?(?=\s|$)", re.IGNORECASE), "versus"),
    (re.compile(r"\bst\.?(?=\s)", re.IGNORECASE), "saint"),
    (re.compile(r"\bdr\.?(?=\s)", re.IGNORECASE), "doctor"),
    (re.compile(r"\bmr\.?(?=\s)", re.IGNORECASE), "mister"),
    (re.compile(r"\bpt\.?(?=\s)", re.IGNORECASE), "part"),
    (re.compile(r"\bvol\.?(?=\s)", re.IGNORECASE), "volume"),
)


def _collapse(text: str) -> str:
    return " ".join(text.split())


def normalize_title(text: str) -> str:
    """Lowercase, transliterate to ASCII, drop apostrophes and punctuation.

    Release separators (``.``, ``_``, ``-``) become spaces so that
    ``The.Office.US`` and ``The Office (US)`` normalize alike.
    """
    text = _unidecode(text.lower())
    text = _APOSTROPHE_RE.sub("", text)
    text = _SEPARATOR_RE.sub(" ", text)
    text = _PUNCT_RE.sub(" ", text)
    return _collapse(text)


def _expand_abbreviations(text: str) -> str:
    for pattern, replacement in _ABBREVIATIONS:
        text = pattern.sub(replacement, text)
    return _collapse(text)


def generate_title_variants(title: str, year: int | None = None) -> list[str]:
    """Return an ordered, de-duplicated list of title variants.

    Most specific first: year-qualified forms, the title as given, the title
    with parenthetical disambiguators (year, region) stripped, apostrophe
    and punctuation-free forms, and abbreviation expansions. A trailing
    ``(US)``/``(UK)`` marker yields both a kept and a stripped variant.
    The unmodified title is always present.
    """
    base = _collapse(title.strip()) or title
    variants: list[str] = []
    seen: set[str] = set()

    def _add(candidate: str) -> None:
        candidate = _collapse(candidate)
        if candidate and candidate not in seen:
            seen.add(candidate)
            variants.append(candidate)

    if year is not None and str(year) not in base:
        _add(f"{base} ({year})")
        _add(f"{base} {year}")

    _add(base)

    stripped = _collapse(_TRAILING_YEAR_RE.sub("", _PAREN_RE.sub("", base)))
    region_free = _collapse(_REGION_RE.sub("", base))

    for form in (stripped, region_free):
        _add(form)

    for form in list(variants):
        _add(_APOSTROPHE_RE.sub("", form))
        _add(_POSSESSIVE_RE.sub(r"\1", form))

    for form in list(variants):
        _add(_expand_abbreviations(form))

    for form in list(variants):
        _add(normalize_title(form))

    if not variants:
        variants.append(title)
    return variants
