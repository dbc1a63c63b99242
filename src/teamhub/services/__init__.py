"""Service layer — every registry and engine operation, returning ServiceResult."""
