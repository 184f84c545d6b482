"""Core engine for commit-keyed incremental builds."""
