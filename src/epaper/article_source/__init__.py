"""Article and breaking news retrieval."""
