import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG_PATH = ".patchwarden.yml"

DEFAULT_CONFIG: dict = {
    "provider": None,  # None disables the LLM soft-rule pass; "anthropic" or "openai" enables it
    "store": "file",
    "learned_rules_path": ".patchwarden-learned.json",
    "policy_path": ".patchwarden-policy.json",
    "gist_id": None,
    "review_draft_prs": False,
    "soft_rules": [],
    "hard_rules": [],
    "ignore": [],  # globs added to the built-in lockfile/asset ignore list
    "allowlist": [],
}


def load_config(config_path: str = DEFAULT_CONFIG_PATH, cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .patchwarden.yml in the current directory
      3. CLI argument overrides

    The policy sections (soft_rules, hard_rules, ignore, allowlist, settings,
    enforcement, agents) are returned raw; ``patchwarden_core.policy.load``
    validates and normalises them.
    """
    config = {
        **DEFAULT_CONFIG,
        "soft_rules": [],
        "hard_rules": [],
        "ignore": [],
        "allowlist": [],
    }

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ValueError(f"{config_path} must contain a YAML mapping, got {type(file_config).__name__}")
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # Resolve credentials from environment variables
    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")

    return config
