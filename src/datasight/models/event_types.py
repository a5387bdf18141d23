"""
Event Type Constants

Centralized definitions for all event types used on the DataSight event bus.
"""

# Conversation events
CONVERSATION_MESSAGE_ADDED = "CONVERSATION_MESSAGE_ADDED"
"""
Dispatched for every message the message log should display. System
messages are never dispatched.

Payload:
    role (str): 'user' or 'assistant'
    content (str): Display text
"""

CONVERSATION_RESTARTED = "CONVERSATION_RESTARTED"
"""
Dispatched after the conversation and current data were cleared.

Payload:
    memory_size (int): Number of dataset fingerprints still remembered
"""

LOADING_STATE_CHANGED = "LOADING_STATE_CHANGED"
"""
Dispatched when an analysis starts and when it reaches any terminal state.

Payload:
    loading (bool): Whether the loading indicator should be shown
"""

ORCHESTRATOR_BUSY = "ORCHESTRATOR_BUSY"
"""
Dispatched when a request is rejected because another one is still in flight.

Payload:
    operation (str): Name of the rejected operation
    message (str): User-facing explanation
"""

# Downstream renderer events
SUGGESTIONS_UPDATED = "SUGGESTIONS_UPDATED"
"""
Payload:
    suggestions (list[dict]): Items with 'title', 'description' and 'category'
"""

RECOMMENDATIONS_UPDATED = "RECOMMENDATIONS_UPDATED"
"""
Payload:
    content (str): Recommendation text, or the fixed failure text
    ok (bool): False when the fallback text is shown
"""

VISUALIZATION_UPDATED = "VISUALIZATION_UPDATED"
"""
Payload:
    ok (bool): Whether chart data is available
    charts (dict, optional): Chart type -> renderer config
    spec (dict, optional): The decoded visualization spec
    message (str, optional): Fixed failure text when ok is False
"""

# File ingestion events
FILES_REJECTED = "FILES_REJECTED"
"""
Payload:
    rejections (list[dict]): Items with 'file_name' and 'reason'
"""

# LLM service telemetry
LLM_SERVICE_WARNING = "LLM_SERVICE_WARNING"
LLM_SERVICE_ERROR = "LLM_SERVICE_ERROR"

# Settings events
RELOAD_LLM_CONFIG = "RELOAD_LLM_CONFIG"
"""
Dispatched after the settings window saved new completion-backend settings.
No payload.
"""
