"""
Model capability predicates.

Each predicate first honours the explicit flags on :class:`Model` and then
falls back to matching well-known model id patterns.
"""
import re

from .types import Assistant, Model, ModelCapability

DEDICATED_IMAGE_MODELS = (
    "dall-e",
    "gpt-image",
    "grok-2-image",
    "imagen",
    "flux",
    "stable-diffusion",
    "cogview",
)

_FUNCTION_CALLING_RE = re.compile(
    r"gpt-4o|gpt-4\.1|gpt-4-|gpt-4$|gpt-5|o[134](-|$)|claude|gemini|qwen|deepseek-chat|"
    r"deepseek-v3|glm-4|grok|mistral-large|kimi|doubao",
    re.IGNORECASE,
)
_FUNCTION_CALLING_EXCLUDED_RE = re.compile(r"imagen|aqa|embed|-image|o1-mini|o1-preview", re.IGNORECASE)

_REASONING_RE = re.compile(
    r"^(o\d+)(?:-[\w-]+)?$|reasoner|thinking|-r1|^deepseek-r|qwq|qvq|claude-3-7|claude-(sonnet|opus)-4|"
    r"gemini-2\.5|grok-3-mini|gpt-5",
    re.IGNORECASE,
)

_EMBEDDING_RE = re.compile(r"embed|bge-|e5-|gte-|jina-clip|text-embedding", re.IGNORECASE)

_OPENAI_LLM_RE = re.compile(r"^(gpt-|o\d|chatgpt-)", re.IGNORECASE)


def _base_id(model: Model) -> str:
    # Brokers prefix ids with an org ("openai/gpt-4o"); only the last part matters.
    return model.id.split("/")[-1].lower()


def is_dedicated_image_generation_model(model: Model) -> bool:
    if model.has(ModelCapability.IMAGE_GENERATION):
        return True
    model_id = _base_id(model)
    return any(model_id.startswith(prefix) for prefix in DEDICATED_IMAGE_MODELS)


def is_embedding_model(model: Model) -> bool:
    if model.has(ModelCapability.EMBEDDING):
        return True
    return bool(_EMBEDDING_RE.search(_base_id(model)))


def is_function_calling_model(model: Model) -> bool:
    if model.has(ModelCapability.FUNCTION_CALLING):
        return True
    model_id = _base_id(model)
    if is_embedding_model(model) or _FUNCTION_CALLING_EXCLUDED_RE.search(model_id):
        return False
    return bool(_FUNCTION_CALLING_RE.search(model_id))


def is_reasoning_model(model: Model) -> bool:
    if model.has(ModelCapability.REASONING):
        return True
    return bool(_REASONING_RE.search(_base_id(model)))


def is_openai_llm_model(model: Model) -> bool:
    """True for OpenAI chat/reasoning models that speak the Responses API."""
    model_id = _base_id(model)
    if is_dedicated_image_generation_model(model) or is_embedding_model(model):
        return False
    if "gpt-4o-image" in model_id:
        return False
    return bool(_OPENAI_LLM_RE.match(model_id))


def is_claude_model(model: Model) -> bool:
    return _base_id(model).startswith("claude")


def is_gemini_model(model: Model) -> bool:
    model_id = _base_id(model)
    return model_id.startswith("gemini") or model_id.startswith("imagen")


def is_enabled_tool_use(assistant: Assistant) -> bool:
    """Whether the assistant asks for native function calling instead of prompt-based tool use."""
    return assistant.settings.tool_use_mode == "function"
