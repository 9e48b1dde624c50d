"""
Charging ledger enumerations.
"""

import enum


class ChargingType(str, enum.Enum):
    """
    Charging session type.

    The values are the strings stored locally and in the remote
    ``charging_records.type`` column.
    """
    FAST = "Fast"
    SLOW = "Slow"
