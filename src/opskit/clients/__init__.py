"""Async HTTP clients for the remote APIs (Mackerel REST, GitHub REST + GraphQL)."""
