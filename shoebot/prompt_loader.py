from __future__ import annotations

from pathlib import Path
from string import Template


def load_prompt(prompt_path: Path) -> str:
    """Purpose: Load a prompt file as UTF-8 text and strip BOM if present.
    Inputs/Outputs: Input is a Path to the prompt file; output is the decoded string.
    Side Effects / State: None; reads the filesystem.
    Dependencies: Uses Path.read_text/read_bytes.
    Failure Modes: UnicodeDecodeError triggers a tolerant decode that drops invalid bytes.
    If Removed: The fallback has no system prompt.
    Testing Notes: Validate BOM-stripping on a file written with utf-8-sig.
    """
    # Read as UTF-8 and fall back to a tolerant decode if needed.
    try:
        return prompt_path.read_text(encoding="utf-8").lstrip("\ufeff")
    except UnicodeDecodeError:
        raw = prompt_path.read_bytes()
        return raw.decode("utf-8", errors="ignore").lstrip("\ufeff")


def render_prompt(prompt_path: Path, **values: str) -> str:
    """Load a prompt and fill its $placeholders; unknown ones are left as-is."""
    return Template(load_prompt(prompt_path)).safe_substitute(**values)
