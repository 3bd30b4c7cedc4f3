"""Model-backed planning steps."""
