import base64
from pathlib import Path
from typing import Union, List, Optional, Dict, Any, Literal, Tuple

import httpx

from .types import Message, ContentPart, TextContent, ToolCall

# =============================================================================
# Image Helpers
# =============================================================================

_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
}


def encode_image_file(image_path: Union[str, Path]) -> Tuple[str, str]:
    """
    Encode a local image file to base64.

    Args:
        image_path (Union[str, Path]): Path to the image file.

    Returns:
        Tuple[str, str]: ``(b64_data, mime_type)``.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    path = Path(image_path)
    if not path.exists():
        raise FileNotFoundError(f"Image file not found: {image_path}")

    mime_type = _MIME_TYPES.get(path.suffix.lower(), "image/jpeg")
    with open(path, "rb") as f:
        b64_data = base64.b64encode(f.read()).decode("utf-8")

    return b64_data, mime_type


async def encode_image_url(url: str) -> Tuple[str, str]:
    """
    Fetch an image from a URL and encode it to base64.

    Args:
        url (str): The publicly accessible URL of the image.

    Returns:
        Tuple[str, str]: ``(b64_data, mime_type)`` with the MIME type taken
        from the Content-Type header.

    Raises:
        httpx.HTTPError: If the download fails (timeout, 404, etc.).
    """
    # Use a browser-like User-Agent to avoid being blocked
    headers = {
        "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
    }

    async with httpx.AsyncClient(timeout=30.0, headers=headers, follow_redirects=True) as http_client:
        response = await http_client.get(url)
        response.raise_for_status()

        content_type = response.headers.get("content-type", "image/jpeg")
        mime_type = content_type.split(";")[0].strip()
        b64_data = base64.b64encode(response.content).decode("utf-8")

    return b64_data, mime_type


async def resolve_image_to_base64(url: str) -> Tuple[str, str]:
    """
    Resolve an image reference (remote URL, data URI, ``file://`` URL or
    local path) to base64 data.

    Returns:
        Tuple[str, str]: ``(base64_data, mime_type)``.
    """
    if url.startswith("data:"):
        # data:[<mediatype>][;base64],<data>
        header, data = url.split(",", 1)
        mime_type = header.split(":")[1].split(";")[0]
        return data, mime_type
    if url.startswith(("http://", "https://")):
        return await encode_image_url(url)
    return encode_image_file(url[len("file://"):] if url.startswith("file://") else url)


# =============================================================================
# Message Helpers
# =============================================================================

def create_text_content(text: str) -> TextContent:
    return {"type": "text", "text": text}


def create_message(
    role: Literal["system", "user", "assistant"],
    content: Union[str, List[Union[str, ContentPart]]],
) -> Message:
    """
    Create a Message, normalizing bare strings inside a content list to
    text parts.
    """
    if isinstance(content, str):
        return {"role": role, "content": content}

    normalized: List[ContentPart] = []
    for item in content:
        if isinstance(item, str):
            normalized.append(create_text_content(item))
        else:
            normalized.append(item)

    return {"role": role, "content": normalized}


def create_tool_result(tool_call_id: str, content: str) -> Message:
    return {
        "role": "tool",
        "tool_call_id": tool_call_id,
        "content": content,
    }


def create_assistant_message_with_tool_calls(
    content: str,
    tool_calls: List[ToolCall],
) -> Message:
    return {
        "role": "assistant",
        "content": content,
        "tool_calls": tool_calls,
    }


def get_message_text(message: Message) -> str:
    """
    Return the plain text of a message, joining the text parts of
    multimodal content and ignoring images.
    """
    content = message.get("content", "")
    if isinstance(content, str):
        return content
    return "".join(part.get("text", "") for part in content if part.get("type") == "text")


def get_last_user_message(messages: List[Message]) -> Optional[Message]:
    for message in reversed(messages):
        if message.get("role") == "user":
            return message
    return None


def filter_empty(d: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys whose value is None."""
    return {k: v for k, v in d.items() if v is not None}
