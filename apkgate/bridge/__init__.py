"""Adapters to external services: the GitHub API and the remote CI trigger."""
