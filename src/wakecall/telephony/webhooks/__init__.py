"""Telephony webhook endpoints and event handling."""
