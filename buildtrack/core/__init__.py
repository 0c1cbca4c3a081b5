"""Phase catalog and exception hierarchy."""
