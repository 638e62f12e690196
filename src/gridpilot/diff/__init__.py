"""Cell-level grid comparison."""
