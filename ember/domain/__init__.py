"""Domain layer: the player profile aggregate and its value objects."""
