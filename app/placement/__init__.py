"""Image placement: scene model, AI proposal, conflict resolution and fallback."""
