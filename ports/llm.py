from __future__ import annotations

from typing import Dict, List, Optional, Protocol


class LLMClientPort(Protocol):
    def complete(
        self,
        *,
        use_case: str,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Return the assistant message text.

        Raises AIProviderRateLimited on HTTP 429 and AIProviderError otherwise.
        """
        ...
