"""
Media cold-storage migration pipeline.

Moves media beyond the newest N items from the content store to blob storage
and repoints every object that references it.
"""

__version__ = "0.1.0"
