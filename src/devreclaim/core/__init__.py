"""Core scan, classify, protect and delete pipeline."""
