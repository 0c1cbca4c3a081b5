"""Request, logging and startup middleware."""
