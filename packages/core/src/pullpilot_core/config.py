import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG: dict = {
    "provider": "openai",  # "openai" | "anthropic" | "canned"
    "store": "sqlite",  # "sqlite" | "memory"
    "store_path": ".pullpilot.db",
    "max_diff_lines": 3000,
    "analysis_timeout": 120,  # seconds
    "max_workers": 4,
    "poll_interval": 2.0,  # seconds between status checks while waiting
    "canned_report": None,  # None = built-in report for the canned provider
}


def load_config(config_path: str = ".pullpilot.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .pullpilot.yml in the current directory
      3. CLI argument overrides
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # Resolve credentials from environment variables
    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")

    return config
