"""
Congress.gov sync and change-detection engine.

Keeps bills, members and committee hearings from the Congress.gov v3 API
in a relational store, records typed change events for bills, and hands
them to a notifier.
"""

__version__ = "0.1.0"
