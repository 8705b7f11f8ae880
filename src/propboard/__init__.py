"""Real-time kanban board on a document store."""
