"""Club administration platform: calendar import tooling."""
