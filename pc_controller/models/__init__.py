"""Controller data models."""
