"""
steam-prefill: prefills a Lancache with Steam app content on behalf of an account.
"""

__version__ = "1.0.0"
