"""
ComputeRouter — Shared Settings

Central configuration for the routing engine, catalog adapters and API.
Load from environment variables with sensible defaults.
"""

import os
from pathlib import Path
from typing import Optional


# =============================================================================
# Project Identity
# =============================================================================
PROJECT_NAME: str = "ComputeRouter"
VERSION: str = "1.0.0"


# =============================================================================
# Network Configuration
# =============================================================================
HTTP_HOST: str = os.environ.get("COMPUTEROUTER_HTTP_HOST", "127.0.0.1")
HTTP_PORT: int = int(os.environ.get("COMPUTEROUTER_HTTP_PORT", "8000"))
CORS_ORIGINS: str = os.environ.get("COMPUTEROUTER_CORS_ORIGINS", "*")


# =============================================================================
# Catalog
# =============================================================================
# mock | console
CATALOG_BACKEND: str = os.environ.get("COMPUTEROUTER_CATALOG", "mock").lower()

CONSOLE_API_URL: str = os.environ.get(
    "COMPUTEROUTER_CONSOLE_API_URL",
    os.environ.get("AKASH_CONSOLE_API_URL", "https://console-api.akash.network"),
)
CONSOLE_API_KEY: str = os.environ.get(
    "COMPUTEROUTER_CONSOLE_API_KEY",
    os.environ.get("AKASH_CONSOLE_API_KEY", ""),
)
CONSOLE_REQUEST_TIMEOUT: int = int(os.environ.get("COMPUTEROUTER_CONSOLE_TIMEOUT", "30"))
DEPLOYMENT_DEPOSIT_USD: float = float(os.environ.get("COMPUTEROUTER_DEPOSIT_USD", "5"))


# =============================================================================
# Bid Collection
# =============================================================================
BID_TIMEOUT_SECONDS: float = float(os.environ.get("COMPUTEROUTER_BID_TIMEOUT", "60"))
BID_POLL_INTERVAL_SECONDS: float = float(os.environ.get("COMPUTEROUTER_BID_POLL_INTERVAL", "5"))

# Finished runs kept for inspection after they leave the live table
FINISHED_RUN_RETENTION: int = int(os.environ.get("COMPUTEROUTER_RUN_RETENTION", "1000"))


# =============================================================================
# Scoring Weights
# =============================================================================
WEIGHT_PRICE: float = float(os.environ.get("COMPUTEROUTER_WEIGHT_PRICE", "0.4"))
WEIGHT_RELIABILITY: float = float(os.environ.get("COMPUTEROUTER_WEIGHT_RELIABILITY", "0.3"))
WEIGHT_PERFORMANCE: float = float(os.environ.get("COMPUTEROUTER_WEIGHT_PERFORMANCE", "0.2"))
WEIGHT_LATENCY: float = float(os.environ.get("COMPUTEROUTER_WEIGHT_LATENCY", "0.1"))


# =============================================================================
# Logging
# =============================================================================
LOG_LEVEL: str = os.environ.get("COMPUTEROUTER_LOG_LEVEL", "INFO")
LOG_DIR: str = os.environ.get("COMPUTEROUTER_LOG_DIR", "logs")
LOG_FILE: Optional[str] = os.environ.get("COMPUTEROUTER_LOG_FILE")


# =============================================================================
# Paths
# =============================================================================
def get_logs_dir() -> Path:
    """Get the logs directory, creating it if necessary."""
    logs_dir = Path(LOG_DIR)
    logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir
