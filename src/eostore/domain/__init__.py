"""Domain layer - catalog entities, pure services and the error taxonomy."""
