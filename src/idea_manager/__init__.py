"""Idea Manager - client core for submitting, reviewing and tracking ideas."""

__version__ = "0.1.0"
