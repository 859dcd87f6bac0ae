"""Services that turn submitted questions into an answered assignment."""

from .answer_synthesizer import AnswerSection, AnswerSynthesizer, GenerationDocument
from .attachments import load_attachment
from .errors import (
    AttachmentError,
    ExtractionDegradedNotice,
    GenerationCancelled,
    GenerationError,
    InvalidInputError,
    RunStateError,
    SerializationError,
    ServiceCallError,
)
from .export_service import ExportService
from .gemini_client import (
    GeminiClient,
    GeminiConfigurationError,
    GeminiConnectionError,
    GeminiError,
    GeminiResponseError,
    GenerationConfig,
    GenerationResponse,
)
from .input_normalizer import (
    BinaryAttachment,
    GenerationRequest,
    RequestPart,
    normalize_request,
)
from .orchestrator import GenerationRun, RunPhase, RunState, run_generation
from .progress import ProgressChannel, ProgressEvent
from .question_extractor import ExtractionResult, QuestionExtractor

__all__ = [
    "AnswerSection",
    "AnswerSynthesizer",
    "AttachmentError",
    "BinaryAttachment",
    "ExportService",
    "ExtractionDegradedNotice",
    "ExtractionResult",
    "GeminiClient",
    "GeminiConfigurationError",
    "GeminiConnectionError",
    "GeminiError",
    "GeminiResponseError",
    "GenerationCancelled",
    "GenerationConfig",
    "GenerationDocument",
    "GenerationError",
    "GenerationRequest",
    "GenerationResponse",
    "GenerationRun",
    "InvalidInputError",
    "ProgressChannel",
    "ProgressEvent",
    "QuestionExtractor",
    "RequestPart",
    "RunPhase",
    "RunState",
    "RunStateError",
    "SerializationError",
    "ServiceCallError",
    "load_attachment",
    "normalize_request",
    "run_generation",
]

# The Qt bridge requires PyQt6. It is imported lazily to avoid import errors
# when the runtime environment lacks Qt libraries.
try:  # pragma: no cover - optional dependency guard
    from .progress_service import ProgressService
except ImportError:  # pragma: no cover
    ProgressService = None  # type: ignore[assignment,misc]
else:  # pragma: no cover - executed when Qt is available
    __all__.append("ProgressService")
