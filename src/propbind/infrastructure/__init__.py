"""Infrastructure layer — config source I/O."""
