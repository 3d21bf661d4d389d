"""Infrastructure helpers shared by the database layer."""
