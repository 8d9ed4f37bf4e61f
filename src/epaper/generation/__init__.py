"""E-paper generation and storage."""
