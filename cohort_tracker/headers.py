"""Semantic roles of spreadsheet columns, from header text alone."""

from typing import Callable, Dict, List, Optional, Tuple

EMAIL = "email"
NAME = "name"
ROLL = "roll"
DIVISION = "division"
LECTURE = "lecture"
CODING_SCORE = "coding_score"
APTITUDE = "aptitude"
CODING_TEST = "coding_test"


def _contains_any(*keywords: str) -> Callable[[str], bool]:
    return lambda h: any(k in h for k in keywords)


def _contains_all(*keywords: str) -> Callable[[str], bool]:
    return lambda h: all(k in h for k in keywords)


# Evaluated in order; the first matching role wins.
ROLE_TABLE: List[Tuple[str, Callable[[str], bool]]] = [
    (EMAIL, _contains_any("email")),
    (NAME, _contains_any("user name", "student name", "name")),
    (ROLL, _contains_any("roll no", "roll", "prn")),
    (DIVISION, _contains_any("division", "section")),
    (LECTURE, _contains_any("lecture")),
    (CODING_SCORE, _contains_any("coding problem score", "coding score")),
    (APTITUDE, _contains_all("overall", "50")),
    (CODING_TEST, _contains_all("we", "100")),
]

ROLES = [role for role, _ in ROLE_TABLE]

# (column position, header text)
HeaderRoles = Dict[str, List[Tuple[int, str]]]


def classify_header(header: str) -> Optional[str]:
    """Return the role of a single header, or None when nothing matches."""
    h = str(header or "").lower()
    for role, matches in ROLE_TABLE:
        if matches(h):
            return role
    return None


def classify_headers(headers: List[str]) -> HeaderRoles:
    """
    Group headers by semantic role.

    Args:
        headers: Header strings in column order

    Returns:
        Mapping of every role to the (position, header) pairs assigned to
        it, in column order. Roles with no column map to an empty list.
    """
    roles: HeaderRoles = {role: [] for role in ROLES}
    for idx, header in enumerate(headers):
        role = classify_header(header)
        if role is not None:
            roles[role].append((idx, header))
    return roles


def columns(roles: HeaderRoles, *names: str) -> List[str]:
    """Header texts for the given roles, role by role in the order asked."""
    return [header for name in names for _, header in roles.get(name, [])]
