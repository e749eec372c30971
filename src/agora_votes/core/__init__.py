"""Core configuration for the Agora voting service."""
