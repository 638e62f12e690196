"""Grid store, canonicalizer, proposals, suggestion cycle and session."""
