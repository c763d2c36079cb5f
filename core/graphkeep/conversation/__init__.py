"""Conversation log: channel-write translation and the store messages land in."""
