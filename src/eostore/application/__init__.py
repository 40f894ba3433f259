"""Application layer - catalog services orchestrating domain and persistence."""
