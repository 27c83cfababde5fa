"""
GymBook - gym class booking engine
"""

__version__ = "1.0.0"
