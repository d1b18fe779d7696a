"""In-memory snapshot of the persisted mod catalog."""
