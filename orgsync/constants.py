"""
orgsync.constants — Shared Constants & Helpers
================================================

Single source of truth for enumerations the dashboards filter on, the
default coin amounts per action, and small presentation helpers.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Organization enumerations
# ---------------------------------------------------------------------------
DEPARTMENTS: tuple[str, ...] = ("CITE", "CBEAM", "COL", "CON", "CEAS", "CIHTM", "OTHERS")
ORG_TYPES: tuple[str, ...] = ("Prof", "SPIN", "Socio-Civic")
ORG_STATUSES: tuple[str, ...] = ("active", "inactive", "pending")

# Year-level filter values accepted by the members directory
YEAR_LEVELS: tuple[str, ...] = ("1", "2", "3", "4", "5")

USER_TYPES: tuple[str, ...] = ("student", "faculty")

# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------
GLOBAL_ROLES: tuple[str, ...] = ("admin", "officer", "adviser", "member")
MANAGER_ROLES: tuple[str, ...] = ("officer", "adviser")

# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------
POST_TYPES: tuple[str, ...] = ("general", "event", "poll", "feedback")
POST_VISIBILITIES: tuple[str, ...] = ("public", "private")

EVALUATION_RATINGS: tuple[str, ...] = (
    "design", "facilities", "overall", "participation", "speakers",
)

# ---------------------------------------------------------------------------
# Coins: default amounts per engagement action.
# Live values are read from the ``settings`` table (``coins.<action>``).
# ---------------------------------------------------------------------------
DEFAULT_COIN_AWARDS: dict[str, int] = {
    "view": 1,
    "like": 10,
    "poll": 30,
    "rsvp": 30,
    "register": 50,
    "feedback": 50,
    "evaluate": 100,
}

GOAL_TYPES: tuple[str, ...] = ("score", "participants")

# Object storage buckets
STORAGE_BUCKETS: tuple[str, ...] = ("avatars", "flappy", "screenshots", "org-pics")


# ---------------------------------------------------------------------------
# Presentation helpers
# ---------------------------------------------------------------------------
def year_level_label(year_level: int | None) -> str:
    """Render a year level as ``"1st Year"`` … ``"5th Year"`` or ``"N/A"``."""
    if not year_level:
        return "N/A"
    suffix = {1: "st", 2: "nd", 3: "rd"}.get(year_level, "th")
    return f"{year_level}{suffix} Year"


def full_name(first_name: str | None, last_name: str | None) -> str:
    """Join name parts, falling back to ``"Unknown"``."""
    name = " ".join(part for part in (first_name, last_name) if part)
    return name or "Unknown"


# ---------------------------------------------------------------------------
# Academic programs → department code (set on profile completion)
# ---------------------------------------------------------------------------
PROGRAM_DEPARTMENTS: dict[str, str] = {
    # College of Business, Economics, Accountancy and Management
    "BS Accountancy": "CBEAM",
    "BS Accounting Information System": "CBEAM",
    "BS Legal Management": "CBEAM",
    "BS Entrepreneurship": "CBEAM",
    "BS Management Technology": "CBEAM",
    "BSBA Financial Management": "CBEAM",
    "BSBA Marketing Management": "CBEAM",
    "Certificate in Entrepreneurship": "CBEAM",
    # College of Education, Arts and Sciences
    "Bachelor of Elementary Education": "CEAS",
    "Bachelor of Secondary Education": "CEAS",
    "AB Communication": "CEAS",
    "Bachelor of Multimedia Arts": "CEAS",
    "BS Biology": "CEAS",
    "BS Forensic Science": "CEAS",
    "BS Mathematics": "CEAS",
    "BS Psychology": "CEAS",
    # College of International Hospitality and Tourism Management
    "BS Hospitality Management": "CIHTM",
    "BS Tourism Management": "CIHTM",
    "Certificate in Culinary Arts": "CIHTM",
    # College of Information Technology and Engineering
    "BS Architecture": "CITE",
    "BS Computer Engineering": "CITE",
    "BS Computer Science": "CITE",
    "BS Electrical Engineering": "CITE",
    "BS Electronics Engineering": "CITE",
    "BS Entertainment and Multimedia Computing": "CITE",
    "BS Industrial Engineering": "CITE",
    "BS Information Technology": "CITE",
    "Associate in Computer Technology": "CITE",
    # College of Nursing
    "BS Nursing": "CON",
}
