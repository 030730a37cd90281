"""Voice persona catalog."""
