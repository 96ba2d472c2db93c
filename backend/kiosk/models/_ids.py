from __future__ import annotations

import uuid


def new_id() -> str:
    """Opaque string primary key (uuid4 hex)."""
    return uuid.uuid4().hex
