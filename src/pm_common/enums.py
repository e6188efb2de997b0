"""Global enums."""

from enum import Enum


class LeaderboardKind(str, Enum):
    ACCURACY = "accuracy"
    PROFIT = "profit"
    VOLUME = "volume"
    STREAK = "streak"


class LedgerBackend(str, Enum):
    POSTGRES = "postgres"
    MEMORY = "memory"
