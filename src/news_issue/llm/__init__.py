"""LLM collaborator boundary: clients, prompts and response parsing."""
