"""
Rentalman Settings.

Supports two formats (dict takes priority):

    # Option 1: Dict
    RENTALMAN = {
        "CRITICAL_SHORTFALL": 5,
        "PARALLEL_CHECKS": True,
    }

    # Option 2: Flat
    RENTALMAN_CRITICAL_SHORTFALL = 5
    RENTALMAN_PARALLEL_CHECKS = True

All settings have sensible defaults; zero configuration required.
Severity thresholds are business policy, tune them here rather than in code.
"""

import threading

from django.conf import settings


# ── Defaults ──

DEFAULTS = {
    "REPOSITORY_BACKEND": "rentalman.adapters.orm.OrmRepository",
    "SERIAL_STOCK_STATES": ["available"],
    "LOT_STOCK_STATES": ["available"],
    "ALLOW_RAW_QUANTITY_FALLBACK": True,
    # Severity policy
    "CRITICAL_SHORTFALL": 5,
    "HIGH_SHORTFALL": 2,
    "ADVISORY_HIGH_COUNT": 3,
    "ALERT_MIN_SEVERITY": "advertencia",
    # Validation execution
    "PARALLEL_CHECKS": False,
    "CHECK_TIMEOUT": 10,
}


# ── Accessors ──

_sentinel = object()


def get_setting(name, default=_sentinel):
    """
    Get a rentalman setting.

    Looks up in order:
    1. RENTALMAN dict (e.g. RENTALMAN = {"CRITICAL_SHORTFALL": 5})
    2. Flat setting (e.g. RENTALMAN_CRITICAL_SHORTFALL = 5)
    3. DEFAULTS
    """
    rentalman_dict = getattr(settings, "RENTALMAN", {})
    if name in rentalman_dict:
        return rentalman_dict[name]

    flat_value = getattr(settings, f"RENTALMAN_{name}", _sentinel)
    if flat_value is not _sentinel:
        return flat_value

    if default is not _sentinel:
        return default

    return DEFAULTS.get(name)


_repository_lock = threading.Lock()
_repository_instance = None


def get_repository_backend():
    """
    Return the configured repository instance.

    The repository is the engine's only window on inventory and
    commitments (InventoryLedger + CommitmentStore protocols).
    """
    global _repository_instance

    if _repository_instance is None:
        with _repository_lock:
            if _repository_instance is None:  # double-checked
                from django.utils.module_loading import import_string

                path = get_setting("REPOSITORY_BACKEND")
                _repository_instance = import_string(path)()

    return _repository_instance


def reset_repository() -> None:
    """Reset singleton (for tests)."""
    global _repository_instance
    _repository_instance = None
