"""Centralized configuration for the FrameLord backend.

Re-exports everything from framelord.infrastructure.settings, then adds typed
constants for the database, LLM, rate limiting, billing, FrameScan and
psychometric settings. Every value has a safe default so the app starts
without extra env configuration.
"""

from __future__ import annotations

import os

from framelord.infrastructure.settings import *  # noqa: F401, F403


def _env(key: str, default: str) -> str:
    return os.getenv(f"FRAMELORD_{key}", default)


# --- App ---
APP_VERSION: str = "1.0.0"

# --- Database ---
DB_POOL_SIZE: int = int(_env("DB_POOL_SIZE", "5"))
DB_POOL_TIMEOUT: float = float(_env("DB_POOL_TIMEOUT", "5.0"))
DB_CONNECT_TIMEOUT: float = float(_env("DB_CONNECT_TIMEOUT", "30.0"))
DB_TEMP_CONN_MAX: int = int(_env("DB_TEMP_CONN_MAX", "10"))
DB_RETRY_MAX: int = int(_env("DB_RETRY_MAX", "5"))
DB_RETRY_BASE_DELAY: float = float(_env("DB_RETRY_BASE_DELAY", "0.1"))
DB_RETRY_MAX_DELAY: float = float(_env("DB_RETRY_MAX_DELAY", "2.0"))
DB_RETRY_JITTER: float = float(_env("DB_RETRY_JITTER", "0.1"))

# --- Outbound HTTP (Stripe, Twilio, SendGrid, NanoBanana, OpenAI, Gemini) ---
HTTP_TIMEOUT_SECONDS: float = float(_env("HTTP_TIMEOUT", "30.0"))

# --- LLM ---
LLM_TIMEOUT_SECONDS: int = int(_env("LLM_TIMEOUT", "30"))
LLM_MAX_RETRIES: int = int(_env("LLM_MAX_RETRIES", "3"))

# --- LLM Budget ---
LLM_USER_DAILY_LIMIT: int = int(_env("LLM_USER_DAILY_LIMIT", "500"))
LLM_GLOBAL_DAILY_LIMIT: int = int(_env("LLM_GLOBAL_DAILY_LIMIT", "10000"))

# --- Rate Limiting ---
RATE_LIMIT_RPM: int = int(_env("RATE_LIMIT_RPM", "60"))
RATE_LIMIT_RPH: int = int(_env("RATE_LIMIT_RPH", "1000"))
RATE_LIMIT_MAX_IPS: int = 10000

# --- Billing ---
WEBHOOK_IDEMPOTENCY_TTL_SECONDS: int = int(_env("WEBHOOK_IDEMPOTENCY_TTL", "3600"))
STRIPE_SIGNATURE_TOLERANCE_SECONDS: int = int(_env("STRIPE_SIGNATURE_TOLERANCE", "300"))

# --- FrameScan ---
FRAMESCAN_MAX_SCANS_PER_SESSION: int = int(_env("FRAMESCAN_MAX_SCANS", "50"))
FRAMESCAN_SESSION_TTL_SECONDS: int = int(_env("FRAMESCAN_SESSION_TTL", "86400"))
FRAMESCAN_MAX_CONTENT_CHARS: int = 20000

# --- Psychometrics ---
PSYCHOMETRIC_MAX_EVIDENCE_ENTRIES: int = 20

# --- Messaging ---
SMS_MAX_BODY_LENGTH: int = 1600

# --- API ---
API_LIST_LIMIT_DEFAULT: int = 100
API_LIST_LIMIT_MAX: int = 500
