"""Batch jobs over raw ASR responses."""
