from .srs_algorithm import compute_next_review, next_srs_level

__all__ = ["compute_next_review", "next_srs_level"]
