"""Diagnostics: frame scheduling, field output, time series and checkpoints."""
