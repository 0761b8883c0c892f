"""Static tool catalog: every tool the server exposes, its argument shape and route.

Argument shapes are strict pydantic models (a number field rejects ``"7"``,
a string field rejects ``7``) that nonetheless *allow* undeclared fields, so
newer KoboldCpp parameters pass through to the remote call untouched.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import DEFAULT_API_URL


class ToolName(str, Enum):
    MAX_CONTEXT_LENGTH = "kobold_max_context_length"
    MAX_LENGTH = "kobold_max_length"
    GENERATE = "kobold_generate"
    MODEL_INFO = "kobold_model_info"
    VERSION = "kobold_version"
    PERF_INFO = "kobold_perf_info"
    TOKEN_COUNT = "kobold_token_count"
    DETOKENIZE = "kobold_detokenize"
    TRANSCRIBE = "kobold_transcribe"
    WEB_SEARCH = "kobold_web_search"
    TTS = "kobold_tts"
    ABORT = "kobold_abort"
    LAST_LOGPROBS = "kobold_last_logprobs"
    SD_MODELS = "kobold_sd_models"
    SD_SAMPLERS = "kobold_sd_samplers"
    TXT2IMG = "kobold_txt2img"
    IMG2IMG = "kobold_img2img"
    INTERROGATE = "kobold_interrogate"
    CHAT = "kobold_chat"
    COMPLETE = "kobold_complete"
    GENERATE_CHECK = "kobold_generate_check"
    GENERATE_CHECK_MULTIUSER = "kobold_generate_check_multiuser"
    MULTIPLAYER_STATUS = "kobold_multiplayer_status"
    MULTIPLAYER_GET_STORY = "kobold_multiplayer_get_story"
    MULTIPLAYER_SET_STORY = "kobold_multiplayer_set_story"
    PRELOAD_STORY = "kobold_preload_story"
    SD_OPTIONS = "kobold_sd_options"
    MODELS = "kobold_models"


# ---------------------------------------------------------------------------
# Argument shapes
# ---------------------------------------------------------------------------

class BaseArgs(BaseModel):
    model_config = ConfigDict(strict=True, extra="allow")

    apiUrl: str = Field(DEFAULT_API_URL, description="Base URL of the KoboldAI server.")


class GenerateArgs(BaseArgs):
    prompt: str
    max_length: float | None = None
    max_context_length: float | None = None
    temperature: float | None = None
    top_p: float | None = None
    top_k: float | None = None
    repetition_penalty: float | None = None
    stop_sequence: list[str] | None = None
    seed: float | None = None


class MultiplayerSetStoryArgs(BaseArgs):
    story: str


class TokenCountArgs(BaseArgs):
    text: str


class DetokenizeArgs(BaseArgs):
    tokens: list[float] = Field(..., description="Token IDs to convert back to text.")


class TranscribeArgs(BaseArgs):
    audio: str = Field(..., description="Base64-encoded audio data.")
    language: str | None = None


class WebSearchArgs(BaseArgs):
    query: str


class TTSArgs(BaseArgs):
    text: str
    voice: str | None = None
    speed: float | None = None


class Txt2ImgArgs(BaseArgs):
    prompt: str
    negative_prompt: str | None = None
    width: float | None = None
    height: float | None = None
    steps: float | None = None
    cfg_scale: float | None = None
    sampler_name: str | None = None
    seed: float | None = None


class Img2ImgArgs(Txt2ImgArgs):
    init_images: list[str] = Field(..., description="Base64-encoded source images.")
    denoising_strength: float | None = None


class InterrogateArgs(BaseArgs):
    image: str = Field(..., description="Base64-encoded image to caption.")


class ChatMessage(BaseModel):
    model_config = ConfigDict(strict=True, extra="allow")

    role: Literal["system", "user", "assistant"]
    content: str


class ChatCompletionArgs(BaseArgs):
    messages: list[ChatMessage]
    temperature: float | None = None
    top_p: float | None = None
    max_tokens: float | None = None
    stop: list[str] | None = None


class CompletionArgs(BaseArgs):
    prompt: str
    max_tokens: float | None = None
    temperature: float | None = None
    top_p: float | None = None
    stop: list[str] | None = None


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ToolDefinition:
    name: ToolName
    description: str
    args_model: type[BaseArgs]
    endpoint: str
    method: Literal["GET", "POST"]
    conversational: bool = False

    def validate(self, arguments: dict[str, Any]) -> list[str]:
        """Return one ``field: message`` line per shape violation (empty when valid)."""
        try:
            self.args_model.model_validate(arguments)
        except ValidationError as exc:
            return [_format_error(err) for err in exc.errors()]
        return []

    def as_mcp_tool(self) -> dict[str, Any]:
        return {
            "name": self.name.value,
            "description": self.description,
            "inputSchema": self.args_model.model_json_schema(),
        }


def _format_error(err: Any) -> str:
    loc = ".".join(str(part) for part in err.get("loc", ())) or "(arguments)"
    return f"{loc}: {err.get('msg', 'invalid value')}"


def _get(name: ToolName, description: str, endpoint: str) -> ToolDefinition:
    return ToolDefinition(name, description, BaseArgs, endpoint, "GET")


def _post(
    name: ToolName,
    description: str,
    endpoint: str,
    args_model: type[BaseArgs] = BaseArgs,
    conversational: bool = False,
) -> ToolDefinition:
    return ToolDefinition(name, description, args_model, endpoint, "POST", conversational)


_DEFINITIONS: tuple[ToolDefinition, ...] = (
    # Core API (api/v1)
    _get(ToolName.MAX_CONTEXT_LENGTH, "Get current max context length setting",
         "/api/v1/config/max_context_length"),
    _get(ToolName.MAX_LENGTH, "Get current max length setting", "/api/v1/config/max_length"),
    _post(ToolName.GENERATE, "Generate text with KoboldAI", "/api/v1/generate", GenerateArgs),
    _get(ToolName.MODEL_INFO, "Get current model information", "/api/v1/model"),
    _get(ToolName.VERSION, "Get KoboldAI version information", "/api/v1/info/version"),
    # Extra API (api/extra)
    _get(ToolName.PERF_INFO, "Get performance information", "/api/extra/perf"),
    _post(ToolName.TOKEN_COUNT, "Count tokens in text", "/api/extra/tokencount", TokenCountArgs),
    _post(ToolName.DETOKENIZE, "Convert token IDs to text", "/api/extra/detokenize", DetokenizeArgs),
    _post(ToolName.TRANSCRIBE, "Transcribe audio using Whisper", "/api/extra/transcribe", TranscribeArgs),
    _post(ToolName.WEB_SEARCH, "Search the web via DuckDuckGo", "/api/extra/websearch", WebSearchArgs),
    _post(ToolName.TTS, "Generate text-to-speech audio", "/api/extra/tts", TTSArgs),
    _post(ToolName.ABORT, "Abort the currently ongoing generation", "/api/extra/abort"),
    _post(ToolName.LAST_LOGPROBS, "Get token logprobs from the last request", "/api/extra/last_logprobs"),
    # Stable Diffusion (sdapi/v1)
    _get(ToolName.SD_MODELS, "List available Stable Diffusion models", "/sdapi/v1/sd-models"),
    _get(ToolName.SD_SAMPLERS, "List available Stable Diffusion samplers", "/sdapi/v1/samplers"),
    _post(ToolName.TXT2IMG, "Generate image from text prompt", "/sdapi/v1/txt2img", Txt2ImgArgs),
    _post(ToolName.IMG2IMG, "Transform existing image using prompt", "/sdapi/v1/img2img", Img2ImgArgs),
    _post(ToolName.INTERROGATE, "Generate caption for image", "/sdapi/v1/interrogate", InterrogateArgs),
    # OpenAI compatible (v1)
    _post(
        ToolName.CHAT,
        "Chat completion (OpenAI-compatible). Messages accumulate across calls, "
        "so send only the new turns.",
        "/v1/chat/completions",
        ChatCompletionArgs,
        conversational=True,
    ),
    _post(ToolName.COMPLETE, "Text completion (OpenAI-compatible)", "/v1/completions", CompletionArgs),
    # Generation status, multiplayer and misc
    _get(ToolName.GENERATE_CHECK, "Poll the in-progress generation output", "/api/extra/generate/check"),
    _post(ToolName.GENERATE_CHECK_MULTIUSER, "Poll in-progress generation output (multiuser mode)",
          "/api/extra/generate/check"),
    _post(ToolName.MULTIPLAYER_STATUS, "Get multiplayer session status", "/api/extra/multiplayer/status"),
    _post(ToolName.MULTIPLAYER_GET_STORY, "Get the shared multiplayer story",
          "/api/extra/multiplayer/getstory"),
    _post(ToolName.MULTIPLAYER_SET_STORY, "Replace the shared multiplayer story",
          "/api/extra/multiplayer/setstory", MultiplayerSetStoryArgs),
    _get(ToolName.PRELOAD_STORY, "Get the story preloaded at server start", "/api/extra/preloadstory"),
    _get(ToolName.SD_OPTIONS, "Get Stable Diffusion options", "/sdapi/v1/options"),
    _get(ToolName.MODELS, "List loaded models (OpenAI-compatible)", "/v1/models"),
)

CATALOG: dict[ToolName, ToolDefinition] = {d.name: d for d in _DEFINITIONS}


def lookup(name: str) -> ToolDefinition | None:
    try:
        return CATALOG[ToolName(name)]
    except ValueError:
        return None


def list_tools() -> list[dict[str, Any]]:
    return [definition.as_mcp_tool() for definition in _DEFINITIONS]
