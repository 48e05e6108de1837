"""Data models — claim elements, payloads, policies and value primitives."""
