"""Core models, configuration, exceptions and utilities for MindRank."""
