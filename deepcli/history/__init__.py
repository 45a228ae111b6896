"""Conversation history and token budgeting."""
