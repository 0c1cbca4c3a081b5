"""Business logic: progress engine, activity feed, CRUD and templates."""
