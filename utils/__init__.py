"""Service helpers shared by the blueprints."""
