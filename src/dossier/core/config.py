"""Configuration loading and validation."""

import os
import json
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigError
from .matching import DEFAULT_ALIASES, AliasMap, ReasonRule
from .models import Decision, Record


DEFAULT_URL = "https://evision.ucl.ac.uk/urd/sits.urd/run/siw_lgn"


class SelectorConfig(BaseModel):
    """Selectors for the remote records system."""
    login_marker: str = Field(default="text=My Portico")
    login_button: str = Field(default="role=button[name='Staff and Students Login']")
    module_link: str = Field(default="text=UCLSelect")
    search_tab: str = Field(default="a:has-text('Search')")
    search_mode: str = Field(default="text=Student Number")
    search_inputs: list[str] = Field(
        default=["role=textbox", "input[type='text']"]
    )
    search_buttons: list[str] = Field(
        default=["input[value='Search']", "button:has-text('Search')"]
    )
    results_table: str = Field(default="table")
    result_links: str = Field(default="table tbody tr td a")
    actions_tab: str = Field(default="text=Actions")
    recommend_links: list[str] = Field(
        default=["a:has-text('Recommend Offer or Reject')", "text=Recommend Offer or Reject"]
    )
    offer_choice: str = Field(default="text=Offer recommendation")
    decision_radios: str = Field(default="input[type='radio']")
    reject_label: str = Field(default="Reject")
    reason_selects: str = Field(default="select")
    submit_buttons: list[str] = Field(
        default=["input[value='Process']", "button:has-text('Process')"]
    )
    documents_tab: str = Field(default="a:has-text('Documents')")
    merge_buttons: list[str] = Field(
        default=[
            "input[value='Merge Documents']",
            "button:has-text('Merge Documents')",
            "a:has-text('Merge Documents')",
        ]
    )
    confirm_buttons: list[str] = Field(
        default=["input[value='Yes']", "button:has-text('Yes')", "a:has-text('Yes')"]
    )
    exit_buttons: list[str] = Field(
        default=["input[value='Exit']", "button:has-text('Exit')", "a:has-text('Exit')"]
    )


class TimingConfig(BaseModel):
    """Waits and settle delays, in milliseconds unless stated."""
    session_check_ms: int = Field(default=5000, ge=0)
    login_timeout_ms: int = Field(default=240000, ge=1000)
    results_timeout_ms: int = Field(default=10000, ge=0)
    idle_timeout_ms: int = Field(default=30000, ge=1000)
    long_idle_timeout_ms: int = Field(default=60000, ge=1000)
    search_settle_ms: int = Field(default=500, ge=0)
    tab_settle_ms: int = Field(default=300, ge=0)
    form_settle_ms: int = Field(default=1000, ge=0)
    choice_settle_ms: int = Field(default=200, ge=0)
    radio_settle_ms: int = Field(default=2000, ge=0)
    submit_settle_ms: int = Field(default=500, ge=0)
    merge_settle_ms: int = Field(default=2000, ge=0)
    poll_interval_seconds: float = Field(default=2.0, gt=0)
    poll_deadline_seconds: float = Field(default=120.0, gt=0)
    confirm_interval_seconds: float = Field(default=1.0, gt=0)
    confirm_attempts: int = Field(default=10, ge=1)


class ReasonRuleConfig(BaseModel):
    """Reject reason dropdown heuristics."""
    select_index: int = Field(default=1, ge=0)
    prefixes: list[str] = Field(default=["8.", "8 "])
    keyword: str = Field(default="not competitive")
    fallback_keywords: list[str] = Field(default=["not competitive", "oversubscribed"])

    def to_rule(self) -> ReasonRule:
        return ReasonRule(
            prefixes=list(self.prefixes),
            keyword=self.keyword,
            fallback_keywords=list(self.fallback_keywords),
        )


class MergeConfig(BaseModel):
    """Document merge workflow text heuristics."""
    trigger_phrases: list[str] = Field(default=["create overview", "amend overview"])
    confirm_phrase: str = Field(default="yes")
    download_suffix: str = Field(default="OVERVIEW")
    fallback_suffix: str = Field(default="01-01-OVERVIEW.PDF")
    trigger_scan_tags: str = Field(default="input, button, a")
    # Stray "Yes" links are ignored; only form controls count.
    confirm_scan_tags: str = Field(default="input, button")


class AutomationConfig(BaseModel):
    """Main automation configuration."""
    target_url: str = Field(default=DEFAULT_URL)
    headless: bool = Field(default=False)
    action_delay_ms: int = Field(default=500, ge=0, le=10000)
    user_data_dir: str = Field(default="")
    browser_channel: Optional[str] = Field(default=None)
    debug: bool = Field(default=False)
    failure_screenshot_dir: Optional[str] = Field(default=None)

    aliases: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_ALIASES))
    selectors: SelectorConfig = Field(default_factory=SelectorConfig)
    timing: TimingConfig = Field(default_factory=TimingConfig)
    reason: ReasonRuleConfig = Field(default_factory=ReasonRuleConfig)
    merge: MergeConfig = Field(default_factory=MergeConfig)

    def profile_dir(self) -> Path:
        """Persistent browser profile location."""
        if self.user_data_dir:
            return Path(self.user_data_dir).expanduser()
        return Path.home() / ".dossier" / "browser-profile"

    def alias_map(self) -> AliasMap:
        return AliasMap(self.aliases)


# Environment variable -> (field, parser)
ENV_OVERRIDES = {
    "DOSSIER_URL": ("target_url", str),
    "DOSSIER_HEADLESS": ("headless", lambda v: v.strip().lower() in ("1", "true", "yes")),
    "DOSSIER_ACTION_DELAY_MS": ("action_delay_ms", int),
    "DOSSIER_PROFILE_DIR": ("user_data_dir", str),
    "DOSSIER_DEBUG": ("debug", lambda v: v.strip().lower() in ("1", "true", "yes")),
    "DOSSIER_BROWSER_CHANNEL": ("browser_channel", str),
}


class ConfigLoader:
    """Loads and validates YAML/JSON configuration and record files."""

    def __init__(self, environ: Optional[dict[str, str]] = None):
        self.environ = os.environ if environ is None else environ

    def load_config(self, path: Optional[str] = None) -> AutomationConfig:
        """Load automation config from file (optional), then apply env overrides."""
        data: dict[str, Any] = {}
        if path is not None:
            loaded = self._load_file(Path(path))
            if not isinstance(loaded, dict):
                raise ConfigError("Config file must contain a mapping", config_path=str(path))
            data = loaded

        for env_name, (field_name, parse) in ENV_OVERRIDES.items():
            raw = self.environ.get(env_name)
            if raw is None or raw == "":
                continue
            try:
                data[field_name] = parse(raw)
            except ValueError as e:
                raise ConfigError(f"Invalid value for {env_name}: {e}", config_path=path)

        try:
            return AutomationConfig(**data)
        except ValidationError as e:
            raise ConfigError(f"Invalid automation config: {e}", config_path=path)

    def load_records(self, path: str) -> list[Record]:
        """
        Load an ordered record list.

        Accepts either a top-level list or a mapping with a ``records`` key.
        Each entry needs ``identifier`` (or ``student_no``); ``programme``,
        ``decision``, ``forename`` and ``surname`` are optional.
        """
        # BaseLoader keeps every scalar a string; 01234567 stays 01234567.
        data = self._load_file(Path(path), yaml_loader=yaml.BaseLoader)
        entries = data.get("records", []) if isinstance(data, dict) else data
        if not isinstance(entries, list):
            raise ConfigError("Records file must contain a list of records", config_path=path)

        records = []
        for position, entry in enumerate(entries):
            if not isinstance(entry, dict):
                raise ConfigError(f"Record {position} is not a mapping", config_path=path)
            identifier = str(entry.get("identifier") or entry.get("student_no") or "").strip()
            if not identifier:
                raise ConfigError(f"Record {position} has no identifier", config_path=path)
            records.append(Record(
                identifier=identifier,
                programme=str(entry.get("programme") or "").strip(),
                decision=Decision.parse(entry.get("decision")),
                forename=str(entry.get("forename") or ""),
                surname=str(entry.get("surname") or ""),
            ))
        return records

    def _load_file(self, path: Path, yaml_loader=yaml.SafeLoader) -> Any:
        """Load YAML or JSON file."""
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}", config_path=str(path))

        try:
            content = path.read_text(encoding="utf-8")
            if path.suffix in (".yaml", ".yml"):
                return yaml.load(content, Loader=yaml_loader) or {}
            elif path.suffix == ".json":
                return json.loads(content)
            else:
                raise ConfigError(
                    f"Unsupported config format: {path.suffix}",
                    config_path=str(path)
                )
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML: {e}", config_path=str(path))
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON: {e}", config_path=str(path))
