"""Pydantic request/response DTOs."""
