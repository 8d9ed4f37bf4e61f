"""Layout templates and the article distributor."""
