"""Brainary — adaptive study service."""
