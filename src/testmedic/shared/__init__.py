"""Shared kernel: domain errors, configuration, logging, resilience, execution."""
