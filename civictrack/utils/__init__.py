"""Shared utilities."""

from .geo import haversine_distance, has_coordinates, format_distance
from .timestamps import normalize_timestamp, utcnow

__all__ = ['haversine_distance', 'has_coordinates', 'format_distance', 'normalize_timestamp', 'utcnow']
