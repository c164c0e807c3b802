"""
Canonical forms for supplier GSTINs and invoice numbers.

Both ledgers are keyed by hand so the same invoice shows up with different
casing, spacing, series decorations and letter/digit confusions. Everything
here is pure and total: bad input degrades to an empty string.
"""

import re
from typing import Iterable, Optional, Pattern

from gstr2b_recon.core.config import settings

_NON_ALNUM = re.compile(r"[^A-Z0-9]")
_WHITESPACE = re.compile(r"\s+")
_NON_DIGIT = re.compile(r"[^0-9]")

_CONFUSABLES = str.maketrans({"O": "0", "I": "1", "L": "1"})


def fold_confusables(value: str) -> str:
    """Fold letters commonly mistyped for digits: O->0, I->1, L->1."""
    return value.translate(_CONFUSABLES)


def _compile_decorations(patterns: Iterable[str], anchor: str) -> Pattern:
    # each decoration is recognised both as written and in its folded spelling
    alternatives = []
    for p in patterns:
        alternatives.append(p)
        folded = fold_confusables(p)
        if folded != p:
            alternatives.append(folded)
    body = "|".join(f"(?:{a})" for a in alternatives) or "(?!)"
    return re.compile(f"^(?:{body})" if anchor == "prefix" else f"(?:{body})$")


_PREFIX_RE = _compile_decorations(settings.INVOICE_PREFIX_PATTERNS, "prefix")
_SUFFIX_RE = _compile_decorations(settings.INVOICE_SUFFIX_PATTERNS, "suffix")


def strip_boilerplate(value: str) -> str:
    """Remove one known series prefix and one known series suffix."""
    return _SUFFIX_RE.sub("", _PREFIX_RE.sub("", value, count=1), count=1)


def normalize_gstin(value: Optional[str]) -> str:
    if not value:
        return ""
    return _NON_ALNUM.sub("", str(value).strip().upper())


def normalize_invoice_number(value: Optional[str]) -> str:
    """
    Canonical invoice number used for every lookup key.

    Upper-cases, drops whitespace and series boilerplate, then folds
    confusable letters. The folding is lossy on purpose: "1NV0O1" and
    "INV001" become the same key.
    """
    if not value:
        return ""
    text = _WHITESPACE.sub("", str(value).strip().upper())
    return fold_confusables(strip_boilerplate(text))


def numeric_suffix(value: Optional[str]) -> str:
    if not value:
        return ""
    return _NON_DIGIT.sub("", str(value))
