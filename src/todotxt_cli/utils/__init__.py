"""Shared helpers for todotxt-cli."""
