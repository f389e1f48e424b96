"""
fitdash - personal endurance-training activity backend.
"""
__version__ = "1.0.0"
