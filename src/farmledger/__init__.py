"""Persistence and ranking engine for the ZONORG farming game."""

from farmledger.service import FarmLedger

__all__ = ["FarmLedger"]
__version__ = "0.1.0"
