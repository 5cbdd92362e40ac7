"""Alumni archive backend."""
