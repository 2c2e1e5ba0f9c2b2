from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


@dataclass(frozen=True)
class Settings:
    """Configuration container for the model, stores, and chat limits."""
    gemini_api_key: str
    gemini_model: str
    data_dir: Path
    catalog_path: Path
    prompts_dir: Path
    history_window: int
    max_output_tokens: int


def load_settings() -> Settings:
    """Purpose: Load configuration from environment variables and defaults.
    Inputs/Outputs: No inputs; returns a Settings instance.
    Side Effects / State: Reads environment variables and filesystem paths.
    Dependencies: Uses os.getenv and BASE_DIR for default paths.
    Failure Modes: Invalid HISTORY_WINDOW/MAX_OUTPUT_TOKENS values raise ValueError.
    If Removed: App cannot locate its stores or configure the model.
    Testing Notes: Verify defaults and overrides via environment variables.
    """
    # Resolve data and catalog paths, then build Settings.
    data_dir = Path(os.getenv("DATA_DIR") or (BASE_DIR / "data" / "runtime")).resolve()
    catalog_path = os.getenv("CATALOG_PATH")
    if catalog_path:
        catalog_file = Path(catalog_path)
    else:
        catalog_file = (BASE_DIR / "data" / "products.json").resolve()

    return Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash-lite"),
        data_dir=data_dir,
        catalog_path=catalog_file,
        prompts_dir=(BASE_DIR / "prompts").resolve(),
        history_window=int(os.getenv("HISTORY_WINDOW", "10")),
        max_output_tokens=int(os.getenv("MAX_OUTPUT_TOKENS", "200")),
    )
