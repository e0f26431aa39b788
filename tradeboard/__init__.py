"""
Tradeboard: options trade tracking, settlement and company leaderboards.
"""

__version__ = "0.1.0"
