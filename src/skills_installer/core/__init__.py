"""Core building blocks: catalog, git driver, inspection, reconciliation."""
