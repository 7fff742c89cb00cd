"""HTTP surface of the token vault."""
