"""Provider-agnostic tool declaration types.

Plugins describe the tools they expose with ToolSchema so that a host
(an agent runtime, an editor, the CLI) can list them and convert them to
whatever function-calling format it needs.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


# Standard tool categories for consistent classification
TOOL_CATEGORIES = [
    "filesystem",   # File reading, writing, editing, navigation
    "system",       # System commands, shell execution, environment
    "communication",  # User interaction, prompts, questions
]


@dataclass
class ToolSchema:
    """Tool/function declaration.

    Attributes:
        name: Unique tool name (e.g., 'takeRemarkableScreenshot').
        description: Human-readable description of what the tool does.
        parameters: JSON Schema object describing the tool's parameters.
        category: Optional category from TOOL_CATEGORIES.
    """
    name: str
    description: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    category: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        result: Dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }
        if self.category:
            result["category"] = self.category
        return result
