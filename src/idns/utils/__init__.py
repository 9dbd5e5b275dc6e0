"""Small concurrency helpers."""
