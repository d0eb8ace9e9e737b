"""Text extraction for diffing."""
