"""
Helper utilities for the Hall of Fame longevity pipeline.

This package contains shared code for:
- record normalization (dates, heights, corrections)
- survival durations and censoring
- age-matched cohort construction
- logging, pipeline state and file utilities
"""
