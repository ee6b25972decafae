"""Time index and logging helpers."""
