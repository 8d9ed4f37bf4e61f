"""PDF drawing of page sections."""
