from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List


@dataclass
class GeneratedImage:
    url: str
    prompt: str
    timestamp: datetime = field(default_factory=datetime.now)
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RecognitionResult:
    content: str
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CompressionResult:
    data: bytes
    original_size: int
    compressed_size: int
    quality: int

    @property
    def ratio(self) -> int:
        """Percentage of the original size saved; negative when the output grew."""
        if self.original_size <= 0:
            return 0
        return round((1 - self.compressed_size / self.original_size) * 100)


@dataclass
class Palette:
    colors: List[str]
