"""Configuration constants for the EmotiHome core."""

# Live session
SAMPLE_INTERVAL = 5.0         # seconds between camera samples
DEFAULT_EMOTION = "neutral"   # shown when no session is running

# Webcam capture
CAMERA_INDEX = 0
FRAME_WIDTH = 640
FRAME_HEIGHT = 480
JPEG_QUALITY = 80

# Emotion analysis service
ANALYZE_URL = "http://127.0.0.1:8000/api/analyze"
CLASSIFY_TIMEOUT = 15.0       # seconds, treated like any other classification failure

# Emotion history
HISTORY_LIMIT = 100           # max entries returned by a range query
HISTORY_RANGES = {            # range name -> hours
    "day": 24,
    "week": 168,
}
SUMMARY_RANGE = "week"
SUMMARY_MIN_LOGS = 5          # fewer logs than this gives no insight

# Environment variable names
ENV_SUPABASE_URL = "SUPABASE_URL"
ENV_SUPABASE_KEY = "SUPABASE_ANON_KEY"
ENV_SUPABASE_JWT = "SUPABASE_JWT"
ENV_USER_ID = "EMOTIHOME_USER_ID"
ENV_ANALYZE_URL = "EMOTIHOME_ANALYZE_URL"
