"""Product listing content audit, AI optimization and rollback service."""

__version__ = "1.0.0"
