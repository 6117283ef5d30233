"""
School transport client: route editing, stop attendance and live bus tracking.
"""

__version__ = "0.1.0"
