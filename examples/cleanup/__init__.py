"""Cleanup example: elevate, then remove orphaned assignments per subscription."""
