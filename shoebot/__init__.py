"""Chat shopping assistant for a small shoe store."""
