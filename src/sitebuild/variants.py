"""Dev/prod variant table.

Every dual-purpose task kind has one options dict per profile. The table is
static; the only runtime input is the profile of the task being run.
"""

from __future__ import annotations

import copy
from enum import Enum
from typing import Any, Dict, Tuple


class Profile(str, Enum):
    DEV = "dev"
    PROD = "prod"
    ANY = "any"


class ErrorPolicy(str, Enum):
    ABORT = "abort"
    LOG_AND_SKIP = "log_and_skip"


ERROR_POLICIES: Dict[Profile, ErrorPolicy] = {
    Profile.DEV: ErrorPolicy.LOG_AND_SKIP,
    Profile.PROD: ErrorPolicy.ABORT,
    Profile.ANY: ErrorPolicy.ABORT,
}

# Unminified -> minified names, applied to prod markup in this order
PROD_RENAMES = (
    ("bundle.css", "bundle.min.css"),
    ("bundle.js", "bundle.min.js"),
)

VARIANTS: Dict[Tuple[str, Profile], Dict[str, Any]] = {
    ("markup", Profile.DEV): {
        "rewrites": [],
    },
    ("markup", Profile.PROD): {
        "rewrites": list(PROD_RENAMES),
    },
    ("style", Profile.DEV): {
        "outfile": "bundle.css",
        "sourcemap": True,
        "output_style": "expanded",
        "autoprefix": False,
        "minify": False,
    },
    ("style", Profile.PROD): {
        "outfile": "bundle.min.css",
        "sourcemap": False,
        "output_style": "expanded",
        "autoprefix": True,
        "minify": True,
    },
    ("script", Profile.DEV): {
        "outfile": "bundle.js",
        "sourcemap": True,
        "minify": False,
        "legal_comments": None,
    },
    ("script", Profile.PROD): {
        "outfile": "bundle.min.js",
        "sourcemap": False,
        "minify": True,
        "legal_comments": "none",
    },
    ("asset", Profile.DEV): {
        "optimize": False,
    },
    ("asset", Profile.PROD): {
        "optimize": True,
    },
}


def error_policy(profile: Profile) -> ErrorPolicy:
    return ERROR_POLICIES[profile]


def select(kind: str | None, profile: Profile) -> Dict[str, Any]:
    """Options for a task kind under a profile.

    Profile-agnostic tasks and tasks without a kind get an empty dict. A copy is
    returned so a transform cannot mutate the table.
    """
    if kind is None or profile is Profile.ANY:
        return {}
    try:
        return copy.deepcopy(VARIANTS[(kind, profile)])
    except KeyError:
        raise KeyError(f"No variant for kind={kind!r} profile={profile.value}") from None
