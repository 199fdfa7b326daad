"""Cache — persistent state derived from a repository scan.

This package owns the lifecycle metadata (creation time, last refresh,
extractor version) that tells a driver whether cached artifacts can be
reused.
"""
