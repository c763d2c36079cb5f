"""Model registry used for default summarization."""
