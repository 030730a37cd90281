"""Outbound user notifications."""
