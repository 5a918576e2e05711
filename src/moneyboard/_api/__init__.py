"""Firebase REST endpoint helpers."""
