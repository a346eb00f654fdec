"""FastAPI application and dependencies."""
