"""
Split "<think>...</think>" reasoning out of raw model text (DeepSeek R1 style output).
Safe to call on every streamed chunk: an unclosed block means the model is still thinking.
"""
import re
from dataclasses import dataclass

OPEN_TAG = "<think>"
CLOSE_TAG = "</think>"

_THINK_BLOCK = re.compile(r"<think>([\s\S]*?)</think>")


@dataclass(frozen=True)
class ThinkingSplit:
    main_content: str
    thinking_content: str
    thinking_complete: bool

    @property
    def is_thinking(self) -> bool:
        """True while the block is open (no closing tag yet)."""
        return bool(self.thinking_content) and not self.thinking_complete


def extract_thinking(content: str | None) -> ThinkingSplit:
    if not content:
        return ThinkingSplit("", "", False)

    if not content.lstrip().startswith(OPEN_TAG):
        return ThinkingSplit(content, "", False)

    match = _THINK_BLOCK.search(content)
    if match:
        return ThinkingSplit(
            main_content=_THINK_BLOCK.sub("", content, count=1).strip(),
            thinking_content=match.group(1).strip(),
            thinking_complete=True,
        )

    return ThinkingSplit(
        main_content="",
        thinking_content=content.replace(OPEN_TAG, "", 1).strip(),
        thinking_complete=False,
    )
