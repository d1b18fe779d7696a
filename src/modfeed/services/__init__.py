"""Service layer orchestrating the repositories."""
