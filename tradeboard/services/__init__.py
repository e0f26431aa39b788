"""
Business logic services for trade settlement, stats and leaderboards.
"""
