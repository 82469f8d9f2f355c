"""Request pipeline and HTTP transport."""
