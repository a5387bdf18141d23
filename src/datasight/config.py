from pathlib import Path

# Repository root: .../src/datasight/config.py -> three levels up.
ROOT_DIR = Path(__file__).resolve().parent.parent.parent

LOGS_DIR = ROOT_DIR / "logs"
SETTINGS_FILE = ROOT_DIR / "user_settings.json"
STORAGE_DB = ROOT_DIR / "datasight_storage.db"

# Upload limits
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
ALLOWED_FILE_TYPES = (
    "image/png",
    "image/jpeg",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/csv",
    "application/pdf",
)

# Analysis settings
CHART_COLORS = (
    "#4285F4", "#34A853", "#FBBC05", "#EA4335",
    "#8AB4F8", "#81C995", "#FDE293", "#F28B82",
)
PREDICTION_HORIZON = 3  # Number of time periods to predict into the future

# Remote completion calls
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30.0

# Conversation and dataset memory bounds
MEMORY_CAPACITY = 10
CONVERSATION_TRIM_THRESHOLD = 12
CONVERSATION_TAIL_SIZE = 10
VISUALIZATION_CONTEXT_SIZE = 5

# Durable storage keys
CONVERSATION_KEY = "conversationHistory"
CURRENT_DATA_KEY = "currentData"
DATASET_MEMORY_KEY = "datasetMemory"

MESSAGES = {
    "welcome": "Welcome! Upload your data files to begin analysis.",
    "error": "An error occurred. Please try again.",
    "processing": "Processing your data. This may take a moment...",
    "analysis_error": "I'm sorry, I encountered an error analyzing your data. Please try again.",
    "chat_error": "I'm sorry, I encountered an error. Please try again.",
    "restarted": (
        "Chat restarted. Upload new data to begin analysis with adaptive AI commentary "
        "based on previously analyzed datasets."
    ),
    "busy": "Still working on the previous request. Please wait for it to finish.",
}

VOICE_CONFIG = {
    "confidence_threshold": 0.7,  # Minimum confidence to accept a transcript outright
}

# Generation parameters per task. Every remote call is made on behalf of one of these.
AGENT_CONFIG = {
    "analyst": {
        "temperature": 0.4,
        "top_p": 0.95,
    },
    "suggestions": {
        "temperature": 0.7,
        "top_p": 0.95,
    },
    "visualization": {
        "temperature": 0.2,  # Chart JSON should be stable
        "top_p": 0.9,
    },
    "recommendations": {
        "temperature": 0.5,
        "top_p": 0.95,
    },
    "commentary": {
        "temperature": 0.5,
        "top_p": 0.95,
    },
}
