"""
Application state management.
Per-document improvement sessions and SSE clients.
"""

from collections import defaultdict
from threading import Lock
from typing import Dict, List

# --- STATE CONTAINERS ---

# Improvement sessions per document id (ImprovementSession)
SESSIONS: Dict[str, object] = {}

# Lock guarding session creation
SESSIONS_LOCK: Lock = Lock()

# Connected SSE clients per document id
CONNECTED_CLIENTS: Dict[str, List] = defaultdict(list)
