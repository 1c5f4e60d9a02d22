"""Constants — every literal the package needs, kept out of the modules that use them."""
from pathlib import Path

# Providers
PROVIDER_GEMINI = "gemini"
PROVIDER_OPENAI = "openai"
PROVIDER_CLAUDE = "claude"
PROVIDERS = (PROVIDER_GEMINI, PROVIDER_OPENAI, PROVIDER_CLAUDE)
PROVIDER_LABELS = {
    PROVIDER_GEMINI: "Gemini",
    PROVIDER_OPENAI: "OpenAI",
    PROVIDER_CLAUDE: "Claude",
}

DEFAULT_MODELS = {
    PROVIDER_GEMINI: "gemini-2.5-flash",
    PROVIDER_OPENAI: "gpt-4.1",
    PROVIDER_CLAUDE: "claude-sonnet-4-5-20250929",
}

# Wire
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com"
GEMINI_API_VERSION = "v1beta"
GEMINI_ENDPOINT = "{base}/{version}/models/{model}:generateContent"
JSON_MIME_TYPE = "application/json"
IMAGE_MIME_TYPE = "image/jpeg"
OPENAI_TEMPERATURE = 0.1
OPENAI_SCHEMA_NAME = "animal_material_analysis"
CLAUDE_MAX_TOKENS = 2048
CLAUDE_PROBE_MAX_TOKENS = 32
DEFAULT_REQUEST_TIMEOUT: float = 60.0

# Credentials
API_KEY_PLACEHOLDER = "YOUR_API_KEY_HERE"
API_KEY_MIN_LENGTH = 20

# Cache
DEFAULT_CACHE_PATH = Path(".material_cache.json")
CACHE_ENTRIES_KEY = "entries"
CACHE_MATERIAL_KEY = "materialName"
CACHE_SUMMARY_KEY = "productionSummary"

# Diagnostics
BODY_EXCERPT_LENGTH = 500

# Prompts
DEFAULT_PROMPT = (
    "Analyze the image.\n\n"
    "Identify visible clothing or footwear items in the image.\n\n"
    "For each item:\n"
    "- Identify likely animal-derived materials\n"
    "- Identify animal species involved\n"
    "- Estimate number of animals used (fractions allowed)\n"
    "- Assign confidence (low, medium, high)\n\n"
    "Return a JSON object with these identifications"
)
USER_CONTEXT_PREFIX = "\n\nAdditional context from user: "
KNOWN_MATERIALS_NOTE = (
    "\n\nNOTE: I already have detailed production summaries for the following "
    "materials: %s. If you identify any of these, please leave the "
    "'production_summary' field empty or null to save tokens. I will fill it in "
    "from my local database."
)
CLAUDE_SCHEMA_INSTRUCTION = (
    "\n\nRespond with a single JSON object only, no prose and no code fences, "
    "matching this JSON schema:\n%s"
)
PROBE_PROMPT = "Say 'test successful' if you can read this."

# Status ticker (seconds)
TICKER_INITIAL_DELAY: float = 2.5
TICKER_INTERVAL: float = 2.0
MSG_TICKER_SENDING = "Sending request to %s..."
TICKER_MESSAGES = (
    "Analyzing image pixels...",
    "Identifying objects...",
    "Detecting materials...",
    "Consulting database...",
    "Formulating responses...",
    "Summarizing results...",
    "Preparing user interface...",
    "Finalizing analysis...",
)

# Error classification
TRANSIENT_MARKERS = (
    "usage limit",
    "quota",
    "rate limit",
    "resource exhausted",
    "resource_exhausted",
    "429",
)
EXCEEDED_MARKER = "exceeded"
EXCEEDED_COMPANIONS = ("billing", "quota")
HTTP_TOO_MANY_REQUESTS = 429
STATUS_HINTS = {
    400: "Tip: This might be due to an invalid API key, model name, or request format.",
    401: "Tip: Your API key might be invalid or expired. Please check your provider console.",
    403: "Tip: Your API key might be invalid or expired. Please check your provider console.",
    429: "Tip: Rate limit exceeded. Please wait a moment and try again.",
}

# User-facing / log messages
MSG_USAGE_LIMIT = "AI usage limit exceeded, try again later."
MSG_KEY_MISSING = "API key is not set. Please set your %s API key."
MSG_KEY_SHORT = "API key appears to be too short (length: %d). Please verify it's correct."
MSG_KEY_OK = "API key validated (length: %d)"
MSG_MODEL_MISSING = "Model ID is not set."
MSG_PROMPT_MISSING = "Base prompt is empty."
MSG_IMAGE_EMPTY = "Image bytes are empty."
MSG_API_ERROR = "API Error: %s\nResponse Code: %s\nResponse: %s"
MSG_NETWORK_ERROR = "Network error: %s"
MSG_PARSE_ERROR = "Parse Error: %s"
MSG_ANALYSIS_START = "Starting analysis - Model: %s, Image size: %d bytes (%.2f KB)"
MSG_REQUEST_OK = "API request successful (took %.2fs), parsing response..."
MSG_REQUEST_FAILED = "API request failed (took %.2fs)"
MSG_TOKEN_USAGE = "Token Usage - Prompt: %s, Response: %s, Total: %s"
MSG_ANALYSIS_COMPLETE = "Analysis complete: %d item(s), %.2f estimated animal(s)"
MSG_PROBE_OK = "API key test successful"
MSG_IMAGE_CANCELLED = "No image selected."
STDIN_IMAGE_ARG = "-"
MSG_IMAGE_NOT_FOUND = "Image file not found: %s"
