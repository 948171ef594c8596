"""Domain layer: entities, exceptions and services for shared accounts."""
