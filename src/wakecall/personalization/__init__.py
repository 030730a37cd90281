"""User personalization of call content."""
