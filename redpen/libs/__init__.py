"""Shared configuration and LLM helpers."""
