"""Pydantic schemas for the homestay API."""
