"""Network configuration constants for Debug Arena."""

DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 8000

PISTON_EXECUTE_URL: str = "https://emkc.org/api/v2/piston/execute"
EXECUTION_TIMEOUT_SECONDS: float = 15.0
STORAGE_TIMEOUT_SECONDS: float = 10.0
