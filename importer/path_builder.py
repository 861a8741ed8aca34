"""
Organizational unit path construction.

Paths are distinguished names written leaf first, e.g.
``OU=2024,OU=Math,OU=Students,DC=school,DC=local``. Every function here is a
pure string transform with no directory access.
"""

import logging
import re
from typing import List, Optional

logger = logging.getLogger(__name__)

ROOT_LABEL = "domain root"
_LABEL_SEPARATORS = re.compile(r"[/\\]")


def _is_ou(segment: str) -> bool:
    return segment[:3].upper() == "OU="


def _is_dc(segment: str) -> bool:
    return segment[:3].upper() == "DC="


def looks_like_dn(value: str) -> bool:
    """A value is a full path when it has a DC= component, or both OU= and a comma."""
    upper = value.upper()
    return "DC=" in upper or ("OU=" in upper and "," in value)


def build_ou_path(grouping_value: Optional[str], default_ou: Optional[str]) -> str:
    """
    Build the canonical OU path for a grouping value.

    Relative labels such as "Math/2024" become ``OU=2024,OU=Math`` followed by
    the default OU. Values that already look like a distinguished name keep
    only their OU= and DC= components.

    Args:
        grouping_value: Raw value of the grouping column
        default_ou: Default base path, may be empty

    Returns:
        str: Canonical path, or the trimmed default OU when nothing can be built
    """
    clean_default = (default_ou or "").strip()

    if grouping_value is None or not grouping_value.strip():
        logger.debug("Empty grouping value, using default OU")
        return clean_default

    if looks_like_dn(grouping_value):
        components = [
            s.strip()
            for s in grouping_value.split(",")
            if _is_ou(s.strip()) or _is_dc(s.strip())
        ]
        if components:
            return ",".join(components)
        logger.warning(
            f"No OU or DC component found in presumed DN '{grouping_value}', using default OU"
        )
        return clean_default

    parts = [p.strip() for p in _LABEL_SEPARATORS.split(grouping_value) if p.strip()]
    relative = ",".join(f"OU={p}" for p in reversed(parts))

    if not relative:
        logger.warning(f"Grouping value '{grouping_value}' produced no OU segment, using default OU")
        return clean_default
    if not clean_default:
        return relative
    return f"{relative},{clean_default}"


def split_path(path: Optional[str]) -> List[str]:
    if not path:
        return []
    return [s.strip() for s in path.split(",") if s.strip()]


def extract_ou_name(path: Optional[str]) -> str:
    """Leaf name of a path: ``OU=2024,OU=Math,DC=x`` -> ``2024``."""
    segments = split_path(path)
    if not segments:
        return ""
    leaf = segments[0]
    if "=" in leaf:
        leaf = leaf.split("=", 1)[1]
    return leaf.strip()


def extract_parent_path(path: Optional[str]) -> str:
    """Path without its leaf; the domain root label when there is no parent."""
    segments = split_path(path)
    if not segments:
        return ""
    if len(segments) == 1:
        return ROOT_LABEL
    return ",".join(segments[1:])


def container_of(distinguished_name: Optional[str]) -> str:
    """Container of an object DN: ``CN=jdoe,OU=Math,DC=x`` -> ``OU=Math,DC=x``."""
    segments = split_path(distinguished_name)
    if len(segments) <= 1:
        return ""
    return ",".join(segments[1:])


def ou_depth(path: Optional[str]) -> int:
    """Number of OU= segments; a first-level OU directly under the root has depth 1."""
    return sum(1 for s in split_path(path) if _is_ou(s))


def canonical_key(path: Optional[str]) -> str:
    """Comparison key: lower-cased, whitespace around commas removed."""
    return ",".join(split_path(path)).lower()


def paths_equal(first: Optional[str], second: Optional[str]) -> bool:
    return canonical_key(first) == canonical_key(second)
