"""Artifact signing."""

from .service import SigningAdapter

__all__ = ["SigningAdapter"]
