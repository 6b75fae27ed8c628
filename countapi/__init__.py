"""Minimal HTTP handler replying with a JSON count of query parameters or body keys."""
