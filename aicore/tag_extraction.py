"""
Incremental extraction of ``<tag>...</tag>`` sections from a text stream.

Deltas arrive in arbitrary fragments, so an opening or closing tag can be
split across chunks. The extractor keeps the undecided tail buffered until
it can tell whether it belongs to a tag.
"""
from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class TagConfig:
    opening_tag: str
    closing_tag: str
    separator: str = ""


@dataclass
class TagExtractionResult:
    content: str
    is_tag_content: bool
    complete: bool = False
    tag_content_extracted: Optional[str] = None


def _partial_suffix_len(text: str, tag: str) -> int:
    """Length of the longest suffix of ``text`` that is a proper prefix of ``tag``."""
    for size in range(min(len(tag) - 1, len(text)), 0, -1):
        if text.endswith(tag[:size]):
            return size
    return 0


class TagExtractor:
    def __init__(self, config: TagConfig):
        self.config = config
        self._buffer = ""
        self._in_tag = False
        self._tag_content = ""
        self._extracted: List[str] = []
        # separator not yet seen after an opening tag
        self._strip_separator = False

    def process_text(self, text: str) -> List[TagExtractionResult]:
        """
        Feed one text delta.

        Returns:
            List[TagExtractionResult]: Plain text outside tags
            (``is_tag_content=False``), text inside a tag
            (``is_tag_content=True``), and one ``complete`` result each time a
            closing tag is seen, carrying the whole tag body.
        """
        results: List[TagExtractionResult] = []
        self._buffer += text

        while self._buffer:
            if self._strip_separator and not self._consume_separator():
                break
            tag = self.config.closing_tag if self._in_tag else self.config.opening_tag
            index = self._buffer.find(tag)

            if index == -1:
                keep = _partial_suffix_len(self._buffer, tag)
                emit = self._buffer[: len(self._buffer) - keep]
                self._buffer = self._buffer[len(self._buffer) - keep:]
                if emit:
                    self._emit(results, emit)
                break

            before = self._buffer[:index]
            if before:
                self._emit(results, before)
            self._buffer = self._buffer[index + len(tag):]

            if self._in_tag:
                body = self._tag_content
                self._extracted.append(body)
                self._tag_content = ""
                self._in_tag = False
                results.append(
                    TagExtractionResult(
                        content="",
                        is_tag_content=False,
                        complete=True,
                        tag_content_extracted=body,
                    )
                )
            else:
                self._in_tag = True
                self._strip_separator = bool(self.config.separator)

        return results

    def finalize(self) -> Optional[TagExtractionResult]:
        """
        Flush the stream end.

        An unterminated tag is returned as complete content; leftover plain
        text is returned as regular content.
        """
        leftover, self._buffer = self._buffer, ""
        if self._strip_separator and self.config.separator.startswith(leftover):
            leftover = ""
        self._strip_separator = False
        if self._in_tag:
            body = self._tag_content + leftover
            self._tag_content = ""
            self._in_tag = False
            if body:
                self._extracted.append(body)
                return TagExtractionResult(
                    content="", is_tag_content=False, complete=True, tag_content_extracted=body
                )
            return None
        if leftover:
            return TagExtractionResult(content=leftover, is_tag_content=False)
        return None

    def _emit(self, results: List[TagExtractionResult], text: str) -> None:
        if self._in_tag:
            self._tag_content += text
        results.append(TagExtractionResult(content=text, is_tag_content=self._in_tag))

    def _consume_separator(self) -> bool:
        """
        Drop the separator at the head of the buffer.

        Returns False while the buffer is still a partial separator, so the
        caller waits for more text.
        """
        separator = self.config.separator
        if self._buffer.startswith(separator):
            self._buffer = self._buffer[len(separator):]
        elif separator.startswith(self._buffer):
            return False
        self._strip_separator = False
        return True
