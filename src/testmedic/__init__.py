"""
TestMedic - repairs failing end-to-end tests.

Reads a Playwright results document, classifies each failure, asks a
reasoning service for a corrected test, and swaps the fix in only when a
re-run of the test passes.
"""

__version__ = "0.1.0"
