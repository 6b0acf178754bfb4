"""
Identifier generation for new records.
"""

from __future__ import annotations

import uuid


def new_id(prefix: str = "id") -> str:
    """
    Return a new opaque identifier like 'c_3f2a9b1c04d94e0f'.
    """
    return f"{prefix}_{uuid.uuid4().hex[:16]}"
