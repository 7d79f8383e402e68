"""
Field tour planning and navigation.

Turns a selection of surveyed sites into an ordered visit tour, tracks the
visit status of every stop and keeps a route to the next stop up to date.
"""

__version__ = "0.1.0"
