"""Library management REST backend."""
