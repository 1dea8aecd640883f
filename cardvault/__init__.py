"""
cardvault - Character Card Import Pipeline

Detects, parses and normalizes character cards from PNG, CHARX, Voxta and
JSON files, and persists them through a pluggable storage adapter.
"""

__version__ = "0.1.0"
