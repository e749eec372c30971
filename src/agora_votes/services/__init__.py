"""Business logic services for the Agora voting subsystem."""
