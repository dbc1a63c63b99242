"""Output layer — render ServiceResult as Rich text or JSON."""
