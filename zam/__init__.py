"""zam - personal shell alias manager"""

__version__ = "0.1.0"
