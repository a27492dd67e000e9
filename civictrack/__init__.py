"""
CivicTrack: incident lifecycle and duplicate resolution for municipal staff.
"""

__version__ = "1.0.0"
