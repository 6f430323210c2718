"""Offline HSK vocabulary store with spaced-repetition scheduling."""
