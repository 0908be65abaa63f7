"""Rewrite the From: header of messages in transit based on envelope addresses."""

__version__ = '0.1.0'
