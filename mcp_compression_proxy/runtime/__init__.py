"""Service lifecycle, runtime state models and statistics."""
