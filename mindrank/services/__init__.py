"""Service layer for MindRank: search stages, reasoning and retrieval."""
