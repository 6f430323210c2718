"""Domain types, errors and storage protocols."""
