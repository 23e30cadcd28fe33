"""DropLink backend package."""
