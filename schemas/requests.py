"""
Request Schemas
Immutable analysis request plus the API request bodies
"""
from pathlib import PurePath
from types import MappingProxyType
from typing import Annotated, Any, Dict, List, Mapping, Optional, Tuple

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
)

# Code size ceiling for API requests (1 MiB)
MAX_CODE_SIZE = 1024 * 1024


def _freeze_options(value: Dict[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(value))


def _thaw_options(value: Mapping[str, Any]) -> Dict[str, Any]:
    return dict(value)


# Read-only view of a copied dict; dumps back to a plain dict
ReadOnlyOptions = Annotated[
    Dict[str, Any],
    AfterValidator(_freeze_options),
    PlainSerializer(_thaw_options),
]


class AnalysisRequest(BaseModel):
    """
    Immutable analysis request

    with_* methods return a new, re-validated instance; the original is
    never modified.
    """

    model_config = ConfigDict(frozen=True)

    code: str
    filename: str = ""
    enabled_analyzers: Tuple[str, ...] = ()
    options: ReadOnlyOptions = Field(default_factory=dict, validate_default=True)
    max_tokens: int = 4000
    use_cache: bool = True
    timeout_seconds: int = 30

    @field_validator("code")
    @classmethod
    def code_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Code cannot be empty")
        return v

    @field_validator("max_tokens")
    @classmethod
    def max_tokens_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Max tokens must be positive")
        return v

    @field_validator("timeout_seconds")
    @classmethod
    def timeout_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Timeout must be positive")
        return v

    @field_validator("enabled_analyzers", mode="before")
    @classmethod
    def analyzer_names_valid(cls, v: Any) -> Tuple[str, ...]:
        names = tuple(v or ())
        for name in names:
            if not isinstance(name, str) or not name.strip():
                raise ValueError("All analyzer names must be non-empty strings")
        # Keep first occurrence order, drop duplicates
        return tuple(dict.fromkeys(n.strip() for n in names))

    # ────────────────────────────────────────────────────────────────
    # with-X builders
    # ────────────────────────────────────────────────────────────────

    def _replace(self, **changes: Any) -> "AnalysisRequest":
        data = self.model_dump()
        data.update(changes)
        return type(self).model_validate(data)

    def with_code(self, code: str) -> "AnalysisRequest":
        return self._replace(code=code)

    def with_filename(self, filename: str) -> "AnalysisRequest":
        return self._replace(filename=filename)

    def with_analyzers(self, analyzers: List[str]) -> "AnalysisRequest":
        return self._replace(enabled_analyzers=analyzers)

    def with_options(self, options: Dict[str, Any]) -> "AnalysisRequest":
        return self._replace(options={**self.options, **options})

    def with_caching(self, use_cache: bool) -> "AnalysisRequest":
        return self._replace(use_cache=use_cache)

    # ────────────────────────────────────────────────────────────────
    # accessors
    # ────────────────────────────────────────────────────────────────

    @property
    def file_extension(self) -> str:
        """Lower-case extension without the dot ('' when no filename)"""
        return PurePath(self.filename).suffix.lstrip(".").lower() if self.filename else ""

    def has_analyzer(self, name: str) -> bool:
        return name in self.enabled_analyzers

    def get_option(self, key: str, default: Any = None) -> Any:
        return self.options.get(key, default)


# ============================================================================
# API REQUEST BODIES
# ============================================================================

class AnalyzeCodeRequest(BaseModel):
    """POST /ai-dev-assistant/analyze"""

    code: str = Field(
        ...,
        min_length=1,
        max_length=MAX_CODE_SIZE,
        description="PHP source to analyze",
        examples=["<?php\n$id = $_GET['id'];\n$db->query(\"SELECT * FROM users WHERE id = $id\");"]
    )

    filename: str = Field(default="", description="Logical filename used in prompts")

    analyzers: Optional[List[str]] = Field(
        default=None,
        description="Analyzer subset (None = configured default)"
    )

    options: Dict[str, Any] = Field(default_factory=dict)

    use_cache: bool = Field(default=True)


class AnalyzeFileRequest(BaseModel):
    """POST /ai-dev-assistant/analyze-file"""

    file_path: str = Field(..., min_length=1, description="Path readable by the server")

    analyzers: Optional[List[str]] = Field(default=None)


class SuggestionsRequest(BaseModel):
    """POST /ai-dev-assistant/suggestions"""

    code: str = Field(..., min_length=1, max_length=MAX_CODE_SIZE)

    issues: List[Dict[str, Any]] = Field(
        default_factory=list,
        description="Issues from a previous analysis"
    )


class MetricsQueryRequest(BaseModel):
    """Metric query window"""

    time_window_minutes: int = Field(
        default=60,
        ge=1,
        le=1440,
        description="Window size in minutes"
    )


class DirectoryScanOptions(BaseModel):
    """
    Options for CodeAnalyzer.analyze_directory

    max_files and exclude_patterns left as None fall back to the
    analyzer configuration (AI_MAX_FILES, AI_EXCLUDED_PATHS).
    """

    max_files: Optional[int] = Field(default=None, ge=1)

    exclude_patterns: Optional[List[str]] = Field(
        default=None,
        description="Substrings or glob patterns matched against relative paths"
    )

    recursive: bool = Field(default=True)

    analyzers: Optional[List[str]] = Field(default=None)

    use_cache: bool = Field(default=True)
