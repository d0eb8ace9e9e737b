"""Predecessor matching: similarity, candidate filtering and assignment search."""
