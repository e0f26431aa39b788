"""
Core utilities: errors, logging, caching and retry helpers.
"""
