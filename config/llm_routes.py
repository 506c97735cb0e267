from __future__ import annotations

import os


# Central routing for LLM use-cases. Edit here to change per-operation defaults.
# You can also override per-route model via env vars for quick testing.
#
# Keys are use_case identifiers consumed by services/llm_client.py
ROUTES: dict[str, dict] = {
    # Person extraction from free text (provider from AI_PROVIDER unless overridden)
    "person_extraction": {
        "provider": os.getenv("LLM_EXTRACTION_PROVIDER"),
        "model": os.getenv("LLM_EXTRACTION_MODEL"),  # falls back to OPENAI_MODEL / AI_MODEL
        "temperature": None,  # falls back to AI_TEMPERATURE
        # Logical operation name for logging (not a vendor API name)
        "operation": "person_extraction",
    },
}
