"""Session core (SessionManager), stores and account operations."""
