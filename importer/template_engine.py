"""
Template rendering for column mappings.

A mapping template mixes literal text with ``%Column%`` or
``%Column:modifier%`` tokens, e.g. ``%Prenom:firstchar%.%Nom:lowercase%``.
Templates are parsed once and the token list is cached per template string.
"""

import logging
import re
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from cachetools import LRUCache

from .attribute_normalizer import normalize_sam_account_name, title_case

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"%([^:%]+)(?::([^%]+))?%")


@dataclass(frozen=True)
class TemplateToken:
    """One ``%column[:modifier]%`` occurrence with its position in the template."""

    full_match: str
    column_name: str
    modifier: Optional[str]
    start: int
    end: int


class TemplateTokenCache:
    """
    Thread-safe, bounded cache of parsed templates keyed by template text.

    Parsing is pure, so two threads racing on the same key store identical
    token tuples and the last write wins harmlessly.
    """

    def __init__(self, maxsize: int = 1024):
        self._cache = LRUCache(maxsize=maxsize)
        self._lock = threading.Lock()

    def get_or_parse(
        self, template: str, parser: Callable[[str], Tuple[TemplateToken, ...]]
    ) -> Tuple[TemplateToken, ...]:
        with self._lock:
            tokens = self._cache.get(template)
        if tokens is not None:
            return tokens

        tokens = parser(template)
        with self._lock:
            self._cache[template] = tokens
        return tokens

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def __contains__(self, template: str) -> bool:
        with self._lock:
            return template in self._cache


def parse_template_tokens(template: str) -> Tuple[TemplateToken, ...]:
    """Extract tokens in template order. Malformed delimiters simply yield no tokens."""
    return tuple(
        TemplateToken(
            full_match=match.group(0),
            column_name=match.group(1),
            modifier=match.group(2),
            start=match.start(),
            end=match.end(),
        )
        for match in TOKEN_PATTERN.finditer(template)
    )


def _split_words(value: str) -> List[str]:
    return [w for w in value.split(" ") if w.strip()]


def apply_modifier(value: str, modifier: Optional[str]) -> str:
    """Apply a case-insensitive modifier to a resolved column value."""
    if not value or not modifier:
        return value

    name = modifier.strip().lower()
    if name == "lowercase":
        return value.lower()
    if name == "uppercase":
        return value.upper()
    if name == "capitalize":
        return title_case(value)
    if name == "trim":
        return value.strip()
    if name == "username":
        return normalize_sam_account_name(value)
    if name == "camelcase":
        words = _split_words(value)
        return "".join(
            w.lower() if i == 0 else w[0].upper() + w[1:].lower()
            for i, w in enumerate(words)
        )
    if name == "pascalcase":
        return "".join(w[0].upper() + w[1:].lower() for w in _split_words(value))
    if name in ("first", "firstchar"):
        return value[0]
    if name == "firstcharlower":
        return value[0].lower()
    if name == "firstcharupper":
        return value[0].upper()

    logger.debug(f"Unknown template modifier '{modifier}', value left unchanged")
    return value


def find_column(row: Dict[str, str], column_name: str) -> Optional[str]:
    """Return the row key matching column_name case-insensitively, or None."""
    if column_name in row:
        return column_name
    wanted = column_name.lower()
    for key in row:
        if key.lower() == wanted:
            return key
    return None


class TemplateEngine:
    """Render mapping templates against spreadsheet rows."""

    def __init__(self, token_cache: Optional[TemplateTokenCache] = None):
        self.token_cache = token_cache if token_cache is not None else TemplateTokenCache()

    def tokens(self, template: str) -> Tuple[TemplateToken, ...]:
        return self.token_cache.get_or_parse(template, parse_template_tokens)

    def render(
        self,
        template: str,
        row: Dict[str, str],
        missing_columns: Optional[List[str]] = None,
    ) -> str:
        """
        Substitute every token of the template with its row value.

        Args:
            template: Mapping template, e.g. "%Prenom% %Nom:uppercase%"
            row: Row data keyed by column name
            missing_columns: Optional list that receives the names of columns
                referenced by the template but absent from the row

        Returns:
            str: Rendered value. Absent columns render as empty strings.
        """
        if template is None or not template.strip():
            return ""
        if "%" not in template:
            return template

        tokens = self.tokens(template)
        if not tokens:
            return template

        # Rebuild from the parse-time spans so substituted values are never re-scanned
        pieces = []
        position = 0
        for token in tokens:
            pieces.append(template[position:token.start])
            pieces.append(self._resolve(token, row, missing_columns))
            position = token.end
        pieces.append(template[position:])
        return "".join(pieces)

    def _resolve(
        self,
        token: TemplateToken,
        row: Dict[str, str],
        missing_columns: Optional[List[str]],
    ) -> str:
        key = find_column(row, token.column_name)
        if key is not None:
            value = row[key]
            value = "" if value is None else str(value)
            logger.debug(f"Token %{token.column_name}% -> column '{key}' -> '{value}'")
        else:
            value = ""
            logger.warning(
                f"Token %{token.column_name}% not found. Available columns: {', '.join(row.keys())}"
            )
            if missing_columns is not None and token.column_name not in missing_columns:
                missing_columns.append(token.column_name)

        if token.modifier:
            value = apply_modifier(value, token.modifier)
        return value
