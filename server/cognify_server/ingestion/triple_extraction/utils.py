"""
Shared utilities for triple extraction.

Provides prompt template loading and rendering.
"""

import re
from pathlib import Path


# Load prompt templates
PROMPTS_DIR = Path(__file__).parent / "prompts"


def load_prompt(filename: str) -> str:
    """Load a prompt template from file."""
    with open(PROMPTS_DIR / filename, "r", encoding="utf-8") as f:
        return f.read()


def render_template(template: str, **kwargs) -> str:
    """Simple Jinja2-style template rendering."""
    result = template

    # Handle conditional blocks {% if var %}...{% endif %}
    for key, value in kwargs.items():
        if_pattern = rf'{{% if {key} %}}(.*?){{% endif %}}'
        if value:
            # Keep the content inside the if block
            result = re.sub(if_pattern, lambda m: m.group(1), result, flags=re.DOTALL)
        else:
            # Remove the entire if block
            result = re.sub(if_pattern, '', result, flags=re.DOTALL)

    for key, value in kwargs.items():
        # Handle simple variable replacement
        rendered = "" if value is None else str(value)
        result = result.replace("{{ " + key + " }}", rendered)
        result = result.replace("{{" + key + "}}", rendered)

    return result.strip()
