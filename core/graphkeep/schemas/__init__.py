"""Pydantic records for checkpoints and the conversation log."""
