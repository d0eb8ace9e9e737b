"""Page-level analysis of line-based diffs."""
