"""Consultation availability and reservation engine"""
from .engine import BookingEngine

__all__ = ["BookingEngine"]
