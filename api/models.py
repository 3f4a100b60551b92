from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from value_objects import StoredFile


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApiModel(BaseModel):
    """Base for wire models: camelCase on the wire, snake_case accepted too"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SourceType(str, Enum):
    FILE = "file"
    EMAIL = "email"
    MESSAGE = "message"
    CALENDAR = "calendar"


class InjectionMode(str, Enum):
    FILE_REF = "fileRef"
    INLINE_SNIPPET = "inlineSnippet"
    STRUCTURED_SUMMARY = "structuredSummary"

    @classmethod
    def _missing_(cls, value):
        # Accept snake_case spellings: file_ref, inline_snippet, structured_summary
        if isinstance(value, str):
            return cls.__members__.get(value.upper())
        return None


class RiskLabel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class OperationPhase(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    EXTRACTING = "extracting"
    INGESTING = "ingesting"
    BACKFILLING = "backfilling"


# ============ Suggestions and context packs ============

class Suggestion(ApiModel):
    id: str
    source_type: SourceType
    title: str
    snippet: str
    source_id: str
    source_path_or_handle: str
    relevance_score: float
    graph_score: float = 0.0
    risk: RiskLabel = RiskLabel.LOW
    reasons: List[str] = []
    timestamp: Optional[datetime] = None


class SuggestRequest(ApiModel):
    query: str = Field(..., description="Text typed by the user")
    source_filters: Optional[List[SourceType]] = None
    limit: int = Field(default=12, ge=1, le=200)
    typing_mode: bool = True
    include_cold_partition_fallback: bool = False


class SuggestResponse(ApiModel):
    suggestions: List[Suggestion]
    partial: bool
    total_candidate_count: int
    latency_ms: int


class ContextPackItem(ApiModel):
    id: str
    source_type: SourceType
    mode: InjectionMode
    title: str
    text: str
    file_path: Optional[str] = None
    metadata: Dict[str, str] = {}


class ContextPack(ApiModel):
    id: str
    created_at: datetime = Field(default_factory=_utcnow)
    query: str
    items: List[ContextPackItem]
    attachment_paths: List[str] = []
    inline_prompt_blocks: List[str] = []


class CreateContextPackRequest(ApiModel):
    query: str
    selected_suggestion_ids: List[str]
    mode_overrides: Dict[str, InjectionMode] = {}


class PreviewRequest(ApiModel):
    item_id: str


# ============ Progress, stats, activity ============

class ProgressState(ApiModel):
    source_type: SourceType
    scope_label: str
    status: str
    items_processed: int
    items_skipped: int
    estimated_total: int
    percent_complete: float
    eta_seconds: Optional[int] = None
    checkpoint_updated_at: datetime = Field(default_factory=_utcnow)


class IndexedSourceStats(ApiModel):
    source_type: SourceType
    document_count: int
    last_document_updated_at: Optional[datetime] = None


class IndexStats(ApiModel):
    total_document_count: int
    sources: List[IndexedSourceStats]


class QueueSourceActivity(ApiModel):
    source_type: SourceType
    queued_item_count: int


class QueueActivity(ApiModel):
    queue_depth: int
    sources: List[QueueSourceActivity]


class Health(ApiModel):
    daemon_version: str
    running: bool
    paused_for_sleep: bool = False
    queue_depth: int
    in_flight_count: int
    last_error: Optional[str] = None
    current_operation: OperationPhase = OperationPhase.IDLE
    current_operation_source_type: Optional[SourceType] = None
    current_item_path: Optional[str] = None


class StateSnapshot(ApiModel):
    health: Health
    progress: List[ProgressState]
    index_stats: IndexStats
    queue_activity: QueueActivity
    current_operation: OperationPhase
    current_operation_source_type: Optional[SourceType] = None
    current_item_path: Optional[str] = None
    updated_at: datetime = Field(default_factory=_utcnow)


# ============ Scopes and backfill ============

class SourceScope(ApiModel):
    source_type: SourceType
    include_paths_or_handles: List[str] = []
    exclude_paths_or_handles: List[str] = []
    enabled: bool = True


class ConfigureScopesRequest(ApiModel):
    scopes: List[SourceScope]


class BackfillJob(ApiModel):
    id: str
    source_type: SourceType
    scope_label: str
    status: str
    resume_token: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class BackfillControlRequest(ApiModel):
    job_id: str

    @field_validator("job_id")
    @classmethod
    def job_id_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("jobId must not be blank")
        return value


class EmptyResponse(ApiModel):
    pass


# ============ Task files ============

class FileDetail(ApiModel):
    name: str
    size: int
    mime_type: str
    uploaded_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_stored_file(cls, stored: StoredFile) -> 'FileDetail':
        return cls(
            name=stored.name,
            size=stored.size,
            mime_type=stored.mime_type,
            uploaded_at=stored.uploaded_at,
            created_at=stored.created_at,
        )


class TaskFilesResponse(ApiModel):
    task_id: str
    input_files: List[FileDetail]
    output_files: List[FileDetail]


class UploadResponse(ApiModel):
    task_id: str
    files: List[str]


class StoredOutputsResponse(ApiModel):
    task_id: str
    output_files: List[FileDetail]
