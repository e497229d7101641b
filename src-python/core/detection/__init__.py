"""Detection package."""

from core.detection.classifier import classify

__all__ = ["classify"]
