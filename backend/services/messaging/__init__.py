"""Outbound messaging collaborators (email)."""

from . import email

__all__ = ["email"]
