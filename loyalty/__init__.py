"""Loyalty backend: background jobs and message delivery."""
