"""Asynchronous discrete-event crowd evacuation simulator."""

__version__ = "0.1.0"
