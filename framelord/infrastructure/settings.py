"""
Application-wide settings and environment configuration
"""

from __future__ import annotations

import os
from pathlib import Path

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent.parent
FRAMELORD_ROOT = Path(__file__).parent.parent

# Environment
ENV = os.getenv("FRAMELORD_ENV", "development")
DEBUG = ENV == "development"

# API Configuration
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))

# Public site used for checkout and portal redirects
BASE_URL = os.getenv("BASE_URL", "https://www.framelord.com").rstrip("/")

# Google / Gemini
GOOGLE_CLOUD_PROJECT = os.getenv("GOOGLE_CLOUD_PROJECT", "")
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
GEMINI_LOCATION = os.getenv("GEMINI_LOCATION", "us-central1")
GEMINI_MAX_TOKENS = int(os.getenv("GEMINI_MAX_TOKENS", "8192"))
GEMINI_TEMPERATURE = float(os.getenv("GEMINI_TEMPERATURE", "0.7"))

# OpenAI
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_TEMPERATURE = float(os.getenv("OPENAI_TEMPERATURE", "0.1"))

# Which backend server-side inference uses: "openai" (HTTP) or "gemini" (SDK)
LLM_PROVIDER = os.getenv("FRAMELORD_LLM_PROVIDER", "openai").lower()


def is_production() -> bool:
    """Check if running in production"""
    return os.getenv("FRAMELORD_ENV", ENV) == "production"


def is_development() -> bool:
    """Check if running in development"""
    return os.getenv("FRAMELORD_ENV", ENV) == "development"
