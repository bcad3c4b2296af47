"""
Settings for timber_tally.

Values are read from the ``TIMBER_TALLY`` dict in Django settings, e.g.::

    TIMBER_TALLY = {
        "DEBOUNCE_SECONDS": 1.0,
        "POLL_INTERVAL": 2.0,
        "TABLE_NAME": "timber_stock",
        "DOCUMENT_ID": "currentStock",
        "DATABASE_ALIAS": "default",
        "REMOTE_UPDATE_MODE": "overwrite",
    }

Missing keys fall back to `DEFAULTS`. When Django settings are not
configured (plain scripts, DB-free tests) the defaults are used as-is.
"""

from typing import Any

from django.conf import settings

DEFAULTS: dict[str, Any] = {
    "DEBOUNCE_SECONDS": 1.0,
    "POLL_INTERVAL": 2.0,
    "TABLE_NAME": "timber_stock",
    "DOCUMENT_ID": "currentStock",
    "DATABASE_ALIAS": "default",
    "REMOTE_UPDATE_MODE": "overwrite",
}


def get_setting(name: str) -> Any:
    if name not in DEFAULTS:
        raise KeyError(
            f"timber_tally: unknown setting '{name}'. Available: {sorted(DEFAULTS)}"
        )

    if not settings.configured:
        return DEFAULTS[name]

    overrides = getattr(settings, "TIMBER_TALLY", None) or {}
    return overrides.get(name, DEFAULTS[name])
