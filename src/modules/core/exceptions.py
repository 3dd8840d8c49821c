"""Infrastructure exceptions shared by every module."""

from __future__ import annotations


class StoreUnavailable(Exception):
    """No store candidate is reachable, or the selected store stopped answering.

    Views translate this into a 503 degraded-mode signal; the storefront
    client treats that response like any other unreachable-server failure.
    """
