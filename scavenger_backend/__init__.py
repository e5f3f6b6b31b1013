"""Scavenger Backend: location-gated scavenger hunt service."""
