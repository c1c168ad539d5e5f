"""Temporal workflow, activities and worker for out-of-process preview generation."""
