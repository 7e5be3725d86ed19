"""Hosted model provider clients."""
