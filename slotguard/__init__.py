"""
slotguard - tenant-scoped business-hours compliance and booking slot engine.
"""

__version__ = "0.1.0"
