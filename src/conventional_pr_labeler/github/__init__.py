"""Thin wrappers around the GitHub API."""
