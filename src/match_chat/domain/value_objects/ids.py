from __future__ import annotations

# Client-assigned ids for optimistic entries; never issued by the server.
TEMP_ID_PREFIX = "temp-"
