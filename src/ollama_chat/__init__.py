"""Terminal chat client for Ollama's streaming chat endpoint."""

__version__ = "0.1.0"
