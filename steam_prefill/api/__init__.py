"""
External API Layer.

This package handles communication with public web APIs used to pick apps.
"""

from .steamspy import PopularGame, SteamSpyClient

__all__ = ["PopularGame", "SteamSpyClient"]
