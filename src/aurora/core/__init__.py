"""Core domain: credentials, roles, permissions and error taxonomy."""
