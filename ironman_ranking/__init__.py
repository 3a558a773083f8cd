"""
iThome Ironman contest subscriber ranking crawler.
"""

__version__ = "0.1.0"
