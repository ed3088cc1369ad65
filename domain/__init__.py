"""Pure domain model for point-of-sale transactions."""
