"""Doctor-facing patient records service"""

__version__ = "1.0.0"
