"""
Generation requests and the backend contract.

Describes what a caller asks for and what the external generation
backend must return.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple


class AppCategory(Enum):
    """Kind of app being generated."""
    MINI_WORLD = "mini-world"
    EXTERNAL_WORLD = "external-world"


class AppPricing(Enum):
    """Whether the generated app itself charges its users."""
    FREE = "free"
    PAID = "paid"


@dataclass(frozen=True)
class AppDetails:
    """Prompt parameters describing the app to generate."""
    description: str
    behavior: str = ""
    style: str = ""
    color: str = ""
    category: AppCategory = AppCategory.MINI_WORLD
    pricing: AppPricing = AppPricing.FREE

    def __post_init__(self):
        """Validate a description is present."""
        if not self.description or not self.description.strip():
            raise ValueError("description is required and cannot be empty")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppDetails":
        """Build details from loosely typed input such as a JSON body.

        Raises:
            ValueError: If category or pricing is not a known value
        """
        return cls(
            description=data.get("description", ""),
            behavior=data.get("behavior", ""),
            style=data.get("style", ""),
            color=data.get("color", ""),
            category=AppCategory(data.get("category") or AppCategory.MINI_WORLD.value),
            pricing=AppPricing(data.get("pricing") or AppPricing.FREE.value)
        )


@dataclass(frozen=True)
class GenerationRequest:
    """A request to generate, attributed to an identity.

    identity is None until the caller has completed verification.
    """
    identity: Optional[str]
    details: AppDetails


@dataclass(frozen=True)
class Artifact:
    """Ordered chunks produced by the generation backend."""
    chunks: Tuple[str, ...]

    @classmethod
    def from_text(cls, text: str, chunk_size: int = 1) -> "Artifact":
        """Split text into fixed-size chunks, preserving order."""
        if chunk_size <= 0:
            raise ValueError("chunk_size must be > 0")
        return cls(tuple(text[i:i + chunk_size] for i in range(0, len(text), chunk_size)))

    @property
    def text(self) -> str:
        return "".join(self.chunks)

    def __len__(self) -> int:
        return len(self.chunks)


class GenerationBackend(Protocol):
    """External content generator.

    Raises any exception on failure; the orchestrator converts it into
    GenerationFailed.
    """

    def generate(self, details: AppDetails) -> Artifact:
        ...


SYSTEM_PROMPT = (
    "You are an expert app developer. Generate complete, working source code "
    "for the requested app. Respond with code only."
)


def build_messages(details: AppDetails) -> List[Dict[str, str]]:
    """Render chat messages describing the requested app."""
    lines: Sequence[Tuple[str, str]] = (
        ("Description", details.description),
        ("Behavior", details.behavior),
        ("Style", details.style),
        ("Color", details.color),
        ("Category", details.category.value),
        ("Pricing", details.pricing.value),
    )
    prompt = "\n".join(f"{label}: {value}" for label, value in lines if value)
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]
