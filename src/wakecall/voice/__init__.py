"""Call script generation and speech synthesis."""
