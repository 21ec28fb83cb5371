"""Domain enumerations and state-transition rules."""

import enum


class CalculationStatus(str, enum.Enum):
    IDLE = "IDLE"
    LOADING = "LOADING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


# State machine: maps current status -> set of valid next statuses.
# LOADING -> LOADING covers a calculation superseding one still in flight.
CALCULATION_TRANSITIONS: dict[CalculationStatus, set[CalculationStatus]] = {
    CalculationStatus.IDLE: {CalculationStatus.LOADING, CalculationStatus.SUCCEEDED},
    CalculationStatus.LOADING: {
        CalculationStatus.LOADING,
        CalculationStatus.SUCCEEDED,
        CalculationStatus.FAILED,
    },
    CalculationStatus.SUCCEEDED: {CalculationStatus.LOADING, CalculationStatus.SUCCEEDED},
    CalculationStatus.FAILED: {CalculationStatus.LOADING, CalculationStatus.SUCCEEDED},
}


class NearThreshold(str, enum.Enum):
    """Advisory band around the 100 km rule; never changes the verdict."""

    JUST_UNDER = "JUST_UNDER"
    JUST_OVER = "JUST_OVER"


class SubscriptionStatus(str, enum.Enum):
    FREE = "free"
    PRO = "pro"


class Feature(str, enum.Enum):
    """Capabilities gated behind a pro subscription."""

    MULTI_STOP = "multi_stop"
    CSV_EXPORT = "csv_export"
    CSV_IMPORT = "csv_import"
    HISTORY = "history"
    RECENT_SEARCHES = "recent_searches"
    DEPOTS = "depots"
