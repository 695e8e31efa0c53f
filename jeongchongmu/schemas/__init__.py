"""Pydantic schemas for backend payloads."""
