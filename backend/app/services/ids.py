# backend/app/services/ids.py
from __future__ import annotations

import secrets

from ..config import settings
from ..domain.errors import StorageError


class IdGenerationError(StorageError):
    code = "id_generation_failed"


def generate_id() -> int:
    """
    Random numeric id in [settings.id_min, settings.id_max].

    Used as the primary-key default for properties, floors, notifications and
    payments so ids are not guessable and not sequential across tables.
    """
    lo = int(settings.id_min)
    hi = int(settings.id_max)
    try:
        return lo + secrets.randbelow(hi - lo + 1)
    except (OSError, NotImplementedError) as e:
        # os.urandom has no entropy source
        raise IdGenerationError(f"could not generate id: {e}") from e
