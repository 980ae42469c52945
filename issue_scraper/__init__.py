"""
GitHub issue scraper: find issues for a product area and report workarounds.
"""

__version__ = "1.0.0"
