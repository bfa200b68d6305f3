from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from match_chat.domain.value_objects.ids import TEMP_ID_PREFIX


@dataclass(frozen=True, slots=True)
class Message:
    id: str
    match_id: str
    sender_id: str
    content: str
    created_at: datetime

    @property
    def is_temporary(self) -> bool:
        """True for optimistic entries that the server has not confirmed yet."""
        return self.id.startswith(TEMP_ID_PREFIX)
