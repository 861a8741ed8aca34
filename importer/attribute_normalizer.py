"""
Directory attribute normalization and required-attribute auto-completion.

The account-name rules follow Active Directory's sAMAccountName constraints:
no forbidden punctuation, at most 20 characters, never empty, never starting
with a digit. The order of the normalization steps is part of the contract;
changing it changes the output for edge-case names.
"""

import logging
import re
import unicodedata
from datetime import datetime
from typing import Callable, Dict, List, Optional

from .models.canonical_attributes import REQUIRED_ATTRIBUTES
from .models.import_config import DEFAULT_DOMAIN

logger = logging.getLogger(__name__)

SAM_ACCOUNT_NAME_MAX_LENGTH = 20

FORBIDDEN_ACCOUNT_CHARS = frozenset('"/\\[]:;|=,+*?<>@#$%^&(){}!~`')
# Any whitespace (tab, NBSP...) folds like a space
_SEPARATORS = re.compile(r"[\s'\-_]")
_DOT_RUN = re.compile(r"\.+")
_WORD_START = re.compile(r"(^|[\s-])([^\W_])")


def remove_diacritics(text: str) -> str:
    """Drop combining marks: 'Éloïse' -> 'Eloise'."""
    if not text or not text.strip():
        return text
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(c for c in decomposed if unicodedata.category(c) != "Mn")
    return unicodedata.normalize("NFC", stripped)


def title_case(value: str) -> str:
    """Lower-case, then upper-case the first letter of every word (hyphenated parts included)."""
    return _WORD_START.sub(lambda m: m.group(1) + m.group(2).upper(), value.lower())


def _fit_length(name: str, limit: int = SAM_ACCOUNT_NAME_MAX_LENGTH) -> str:
    if len(name) <= limit:
        return name

    parts = name.split(".")
    if len(parts) == 2:
        given, family = parts
        while len(given) + 1 + len(family) > limit and len(given) > 1:
            given = given[:-1]
        while len(given) + 1 + len(family) > limit and len(family) > 1:
            family = family[:-1]
        name = f"{given}.{family}"

    if len(name) > limit:
        name = name[:limit]
    return name


def normalize_sam_account_name(
    value: str, clock: Optional[Callable[[], datetime]] = None
) -> str:
    """
    Normalize a free-text name into a valid account name.

    Steps: lower-case, strip diacritics, remove forbidden characters, fold
    separators into dots, collapse dots, trim dots, prefix a leading digit,
    fit to 20 characters (keeping the given.family shape when possible),
    re-trim a trailing dot, and fall back to a time-based name when nothing
    is left.

    Args:
        value: Raw name, e.g. "Jean-François O'Neil"
        clock: Optional callable returning the current datetime (fallback name)

    Returns:
        str: Normalized account name, e.g. "jean.francois.o.neil"
    """
    if value is None or not value.strip():
        return value

    # Lower-case before stripping marks: some capitals lower-case to a letter plus a mark
    normalized = remove_diacritics(value.lower()).strip()
    normalized = "".join(c for c in normalized if c not in FORBIDDEN_ACCOUNT_CHARS)
    normalized = _SEPARATORS.sub(".", normalized)
    normalized = _DOT_RUN.sub(".", normalized)
    normalized = normalized.strip(".")

    if normalized and normalized[0].isdigit():
        normalized = "u" + normalized

    normalized = _fit_length(normalized)
    normalized = normalized.rstrip(".")

    if not normalized:
        now = (clock or datetime.now)()
        normalized = "user" + now.strftime("%M%S")
        logger.warning(f"Account name '{value}' normalized to nothing, using fallback '{normalized}'")

    return normalized


def normalize_display_name(value: str) -> str:
    if not value or not value.strip():
        return value
    return title_case(value.strip())


def normalize_given_name(value: str) -> str:
    if not value or not value.strip():
        return value
    normalized = value.strip()
    # Initials such as "JP" are left alone
    if len(normalized) > 2:
        normalized = normalized[0].upper() + normalized[1:].lower()
    return normalized


def normalize_email(value: str, default_domain: str = DEFAULT_DOMAIN) -> str:
    if not value or not value.strip():
        return value
    normalized = value.lower().replace(" ", "").strip()
    if "@" not in normalized:
        normalized += f"@{default_domain}"
    return normalized


def _has_value(attributes: Dict[str, str], name: str) -> bool:
    value = attributes.get(name)
    return bool(value and value.strip())


class AttributeNormalizer:
    """
    Per-attribute formatting plus required-attribute completion.

    Dispatch is on the lower-cased attribute name; attributes without a
    dedicated rule are only trimmed.
    """

    def __init__(
        self,
        default_domain: str = DEFAULT_DOMAIN,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.default_domain = default_domain or DEFAULT_DOMAIN
        self.clock = clock or datetime.now

    def normalize(self, attribute_name: str, value: str) -> str:
        if value is None or not value.strip():
            return value

        name = attribute_name.lower()
        if name == "samaccountname":
            return normalize_sam_account_name(value, self.clock)
        if name == "displayname":
            return normalize_display_name(value)
        if name == "givenname":
            return normalize_given_name(value)
        if name in ("mail", "email"):
            return normalize_email(value, self.default_domain)
        return value.strip()

    def normalize_sam_account_name(self, value: str) -> str:
        return normalize_sam_account_name(value, self.clock)

    def validate_required(self, attributes: Dict[str, str]) -> List[str]:
        """
        Fill required and derived attributes in place.

        Missing required attributes are auto-completed from weaker fields;
        displayName and userPrincipalName are derived when absent.

        Args:
            attributes: Mapped attribute dictionary, modified in place

        Returns:
            List[str]: Required attributes that are still absent
        """
        missing = [a for a in REQUIRED_ATTRIBUTES if not _has_value(attributes, a)]
        if missing:
            self.auto_complete(attributes, missing)

        if not _has_value(attributes, "displayName"):
            given = attributes.get("givenName", "") if _has_value(attributes, "givenName") else ""
            surname = attributes.get("sn", "") if _has_value(attributes, "sn") else ""
            if given or surname:
                attributes["displayName"] = f"{given} {surname}".strip()
                logger.info(f"displayName derived: '{attributes['displayName']}'")
            else:
                logger.warning("Cannot derive displayName: givenName and sn are both missing")

        if not _has_value(attributes, "userPrincipalName") and _has_value(attributes, "sAMAccountName"):
            if _has_value(attributes, "mail"):
                attributes["userPrincipalName"] = attributes["mail"]
            else:
                attributes["userPrincipalName"] = (
                    f"{attributes['sAMAccountName']}@{self.default_domain}"
                )

        still_missing = [a for a in REQUIRED_ATTRIBUTES if not _has_value(attributes, a)]
        for name in still_missing:
            # Never keep a blank placeholder for a required attribute
            attributes.pop(name, None)
        return still_missing

    def auto_complete(self, attributes: Dict[str, str], missing: List[str]) -> None:
        """Derive missing givenName / sn / sAMAccountName from the fields that are present."""
        logger.debug(f"Auto-completing missing attributes: {', '.join(missing)}")
        display_parts = (
            attributes["displayName"].split() if _has_value(attributes, "displayName") else []
        )

        if "givenName" in missing:
            if display_parts:
                attributes["givenName"] = display_parts[0]
                logger.info(f"givenName auto-completed: {attributes['givenName']}")
            else:
                logger.error("No data available to auto-complete 'givenName', check the column mapping")

        if "sn" in missing:
            if len(display_parts) > 1:
                attributes["sn"] = display_parts[-1]
                logger.info(f"sn auto-completed from displayName: {attributes['sn']}")
            elif len(display_parts) == 1:
                attributes["sn"] = display_parts[0]
                logger.info(f"sn auto-completed (single word): {attributes['sn']}")
            else:
                logger.error("No data available to auto-complete 'sn', check the column mapping")

        if "sAMAccountName" in missing:
            given = attributes.get("givenName", "") if _has_value(attributes, "givenName") else ""
            surname = attributes.get("sn", "") if _has_value(attributes, "sn") else ""
            if given and surname:
                attributes["sAMAccountName"] = self.normalize_sam_account_name(f"{given}.{surname}")
            elif given:
                attributes["sAMAccountName"] = self.normalize_sam_account_name(given)
            elif surname:
                attributes["sAMAccountName"] = self.normalize_sam_account_name(surname)
            else:
                logger.error("Cannot auto-complete sAMAccountName: no given name or surname")
                return
            logger.info(f"sAMAccountName auto-completed: {attributes['sAMAccountName']}")
