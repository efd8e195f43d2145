"""Global pytest configuration."""

import os

# Keep the module-level app off real collaborators before any imports
os.environ.setdefault("LLM_API_KEY", "")
os.environ.setdefault("LOG_LEVEL", "WARNING")
