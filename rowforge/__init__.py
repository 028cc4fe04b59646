"""Column rule parsing, dependency validation and generation-run tracking for tabular datasets."""
