"""HTTP and WebSocket API for the Agora voting service."""
