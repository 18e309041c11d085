"""Spectrum ring rendering."""
