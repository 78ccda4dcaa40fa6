"""InsightNotes backend."""
