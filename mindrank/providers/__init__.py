"""Provider implementations for MindRank ports."""
