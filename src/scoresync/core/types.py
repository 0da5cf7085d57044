"""Shared types for scoresync.

This module defines enums used across the sync subsystem and the CLI.
"""

from __future__ import annotations

from enum import Enum


class SyncState(str, Enum):
    """Phase of the sync state machine.

    The manager is long-lived: it always settles back to IDLE or ERROR
    after an attempt and is ready for a retry.
    """

    IDLE = "idle"
    SYNCING = "syncing"
    ERROR = "error"
