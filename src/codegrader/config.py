from typing import Iterable, Optional


DEFAULT_CODE_EXTENSIONS = (".py",)
DEFAULT_KNOWN_DOMAINS = ("calvin.edu", "student.edu")
DEFAULT_FALLBACK_DOMAIN = "student.edu"


class GraderConfig:
    """
    Configuration for codegrader behavior.

    This intentionally excludes secrets (API keys).
    """

    def __init__(
        self,
        *,
        model_name: str = "gpt-4o-mini",
        temperature: float = 0.3,
        max_tokens: int = 2000,
        default_max_points: float = 20.0,
        history_limit: int = 50,
        coalesce_window_s: float = 1.0,
        batch_delay_s: float = 1.0,
        code_extensions: Optional[Iterable[str]] = None,
        known_domains: Optional[Iterable[str]] = None,
        fallback_domain: str = DEFAULT_FALLBACK_DOMAIN,
    ):
        self.model_name = model_name
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.default_max_points = default_max_points
        self.history_limit = history_limit
        self.coalesce_window_s = coalesce_window_s
        self.batch_delay_s = batch_delay_s
        self.code_extensions = tuple(
            e.lower() for e in (code_extensions or DEFAULT_CODE_EXTENSIONS)
        )
        self.known_domains = tuple(known_domains or DEFAULT_KNOWN_DOMAINS)
        self.fallback_domain = fallback_domain
