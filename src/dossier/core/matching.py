"""
Text-matching heuristics used to pick rows and options on the remote pages.

The data (alias table, prefixes, keywords) lives in configuration; the
functions here only apply it.
"""

import re
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence


DEFAULT_ALIASES: dict[str, str] = {
    "AIBH": "TMSARTSINT03",
    "AISD": "TMSARTSINT02",
    "AIDE": "TMSCOMSSAD18",
    "ISEC": "TMSCOMSINF01",
    "CF": "TMSCOMSCFI01",
    "FRM": "TMSCOMSFRM01",
    "FT": "TMSFINSTEC01",
    "EDT": "TMSCOMSEDT01",
    "ML": "TMSCOMSMCL01",
    "DSML": "TMSDATSMLE01",
    "CSML": "TMSCOMSSML01",
    "RAI": "TMSROBAARI01",
    "SEIOT": "TMSCOMSEIT01",
    "DDI": "TMSCOMSDDI19",
    "CS": "TMSCOMSING01",
    "SSE": "TMSCOMSSSE01",
    "CGVI": "TMSCOMSCGV01",
}


class AliasMap:
    """Case-insensitive short-code to canonical-code lookup."""

    def __init__(self, aliases: Optional[Mapping[str, str]] = None):
        source = DEFAULT_ALIASES if aliases is None else aliases
        self._aliases = {key.strip().upper(): value for key, value in source.items()}

    def resolve(self, code: str) -> str:
        """Return the canonical code, or the input unchanged if unmapped."""
        code = code.strip()
        return self._aliases.get(code.upper(), code)

    def __contains__(self, code: str) -> bool:
        return code.strip().upper() in self._aliases


@dataclass
class ResultRow:
    """A search result link and the text of the row that contains it."""
    index: int
    link_text: str
    row_text: str
    href: str = ""

    def matches(self, identifier: str, code: str) -> tuple[bool, bool]:
        return identifier in self.row_text, code in self.row_text


def find_result_row(
    rows: Sequence[ResultRow],
    identifier: str,
    code: str,
) -> list[ResultRow]:
    """All rows containing both identifier and code, in document order."""
    return [row for row in rows if all(row.matches(identifier, code))]


@dataclass
class ReasonRule:
    """
    Reject-reason option selection rule.

    Primary: option text starts with one of ``prefixes`` and contains
    ``keyword``. Fallback: option text contains every ``fallback_keywords``
    entry. Keyword checks are case-insensitive.
    """
    prefixes: list[str] = field(default_factory=lambda: ["8.", "8 "])
    keyword: str = "not competitive"
    fallback_keywords: list[str] = field(
        default_factory=lambda: ["not competitive", "oversubscribed"]
    )

    def choose(self, options: Sequence[str]) -> Optional[int]:
        """Index of the option to select, or None."""
        keyword = self.keyword.lower()
        for i, text in enumerate(options):
            stripped = text.strip()
            if stripped.startswith(tuple(self.prefixes)) and keyword in stripped.lower():
                return i

        wanted = [k.lower() for k in self.fallback_keywords]
        for i, text in enumerate(options):
            lowered = text.lower()
            if wanted and all(k in lowered for k in wanted):
                return i

        return None


def download_link_pattern(identifier: str, suffix: str) -> re.Pattern:
    """Regex for the download link text: identifier followed by the suffix token."""
    return re.compile(f"{re.escape(identifier)}.*{re.escape(suffix)}", re.IGNORECASE)
