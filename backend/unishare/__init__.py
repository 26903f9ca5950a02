"""UniShare backend and engagement client."""
