"""Service layer — operations over a loaded property store, returning ServiceResult."""
