"""Source package for the Vision LaTeX service."""
