"""Identifier generation for stored entities."""

import uuid


def generate_id(prefix: str) -> str:
    """Generate a unique prefixed ID like RNT-ABC123DEF456."""
    return f"{prefix}-{uuid.uuid4().hex[:12].upper()}"
