"""Configuration loading and validation for PR Reviewer.

Two documents are involved:

- the **review policy** (``review-config.yml``), authored by the project being
  reviewed. It describes the project and is injected into the review prompt.
- the **settings** (optional ``pr-reviewer.yml`` plus environment), which hold
  credentials and run switches for this tool.

Both are parsed once at process entry and passed down explicitly.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from pr_reviewer.errors import ConfigurationError

DEFAULT_MODEL = "gpt-4o"
DEFAULT_MODEL_BASE_URL = "https://api.openai.com/v1"
DEFAULT_STATUS_CONTEXT = "pr-review"


@dataclass(frozen=True)
class SchemaPolicy:
    """Where the database schema lives."""

    orm: str
    path: str


@dataclass(frozen=True)
class MultiTenancyPolicy:
    """Tenant-scoping rule every query must follow."""

    enabled: bool
    scope_column: str
    check_description: str
    applies_to: tuple[str, ...] = ()


@dataclass(frozen=True)
class AuthPolicy:
    """Authentication requirements for routes."""

    provider: str
    middleware_import: str
    protected_routes: str
    except_routes: tuple[str, ...] = ()
    applies_to: tuple[str, ...] = ()


@dataclass(frozen=True)
class TestingPolicy:
    """Test conventions of the project."""

    __test__ = False  # not a pytest test class

    framework: str
    test_dir: str
    source_dirs: tuple[str, ...] = ()


@dataclass(frozen=True)
class RoutesPolicy:
    """Route definitions and data-access layer."""

    file: str
    data_access: str


@dataclass(frozen=True)
class ExcludePath:
    """A path prefix removed from review scope."""

    path: str
    reason: str = ""


@dataclass(frozen=True)
class ReviewPolicy:
    """Per-project review policy."""

    project_type: str
    language: str
    schema: SchemaPolicy | None = None
    multi_tenancy: MultiTenancyPolicy | None = None
    auth: AuthPolicy | None = None
    testing: TestingPolicy | None = None
    routes: RoutesPolicy | None = None
    exclude_paths: tuple[ExcludePath, ...] = ()
    conventions: tuple[str, ...] = ()

    @property
    def exclude_prefixes(self) -> list[str]:
        return [e.path for e in self.exclude_paths]


@dataclass
class ModelSettings:
    """Model provider configuration."""

    api_key: str
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_MODEL_BASE_URL
    timeout_seconds: int = 300
    fix_max_tokens: int = 4096


@dataclass
class GitHubSettings:
    """GitHub integration configuration."""

    token: str
    base_url: str | None = None  # For GitHub Enterprise


@dataclass
class ReviewSettings:
    """Run switches."""

    auto_fix: bool = True
    auto_merge: bool = True
    status_context: str = DEFAULT_STATUS_CONTEXT


@dataclass
class Settings:
    """Complete run configuration."""

    model: ModelSettings
    github: GitHubSettings
    review: ReviewSettings = field(default_factory=ReviewSettings)


# --- Review policy ---


def load_policy(policy_path: Path | str) -> ReviewPolicy:
    """Load and validate the review policy document.

    Args:
        policy_path: Path to the YAML policy file

    Returns:
        Parsed policy

    Raises:
        ConfigurationError: If the file is missing, unparsable, or invalid
    """
    path = Path(policy_path)
    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read review policy {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Review policy {path} is not valid YAML: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Review policy {path} must be a mapping")

    errors = validate_policy(raw)
    if errors:
        raise ConfigurationError(f"Invalid review policy {path}: " + "; ".join(errors))

    return parse_policy(raw)


def validate_policy(raw: dict[str, Any]) -> list[str]:
    """Validate a raw policy mapping and return list of errors.

    Args:
        raw: Mapping loaded from YAML

    Returns:
        List of validation error messages (empty if valid)
    """
    errors = []

    for key in ("project_type", "language"):
        if not raw.get(key):
            errors.append(f"Missing required field '{key}'")

    for key in ("schema", "multi_tenancy", "auth", "testing", "routes"):
        if raw.get(key) is not None and not isinstance(raw[key], dict):
            errors.append(f"'{key}' must be a mapping")

    for key, required in (
        ("schema", ("orm", "path")),
        ("multi_tenancy", ("scope_column",)),
        ("auth", ("provider", "protected_routes")),
        ("testing", ("framework", "test_dir")),
        ("routes", ("file", "data_access")),
    ):
        section = raw.get(key)
        if key == "multi_tenancy" and isinstance(section, dict) and not section.get("enabled"):
            continue
        if isinstance(section, dict):
            for name in required:
                if not section.get(name):
                    errors.append(f"Missing required field '{key}.{name}'")

    exclude_paths = raw.get("exclude_paths") or []
    if not isinstance(exclude_paths, list):
        errors.append("'exclude_paths' must be a list")
    else:
        for i, entry in enumerate(exclude_paths):
            if not isinstance(entry, dict) or not entry.get("path"):
                errors.append(f"exclude_paths[{i}] must have a 'path'")

    conventions = raw.get("conventions") or []
    if not isinstance(conventions, list):
        errors.append("'conventions' must be a list of strings")

    return errors


def parse_policy(raw: dict[str, Any]) -> ReviewPolicy:
    """Parse a validated raw mapping into a ReviewPolicy."""
    schema_raw = raw.get("schema")
    schema = SchemaPolicy(orm=schema_raw["orm"], path=schema_raw["path"]) if schema_raw else None

    tenancy_raw = raw.get("multi_tenancy")
    multi_tenancy = None
    if tenancy_raw:
        multi_tenancy = MultiTenancyPolicy(
            enabled=bool(tenancy_raw.get("enabled", False)),
            scope_column=tenancy_raw.get("scope_column", ""),
            check_description=tenancy_raw.get("check_description", ""),
            applies_to=tuple(tenancy_raw.get("applies_to") or ()),
        )

    auth_raw = raw.get("auth")
    auth = None
    if auth_raw:
        auth = AuthPolicy(
            provider=auth_raw["provider"],
            middleware_import=auth_raw.get("middleware_import", ""),
            protected_routes=auth_raw["protected_routes"],
            except_routes=tuple(auth_raw.get("except") or ()),
            applies_to=tuple(auth_raw.get("applies_to") or ()),
        )

    testing_raw = raw.get("testing")
    testing = None
    if testing_raw:
        testing = TestingPolicy(
            framework=testing_raw["framework"],
            test_dir=testing_raw["test_dir"],
            source_dirs=tuple(testing_raw.get("source_dirs") or ()),
        )

    routes_raw = raw.get("routes")
    routes = RoutesPolicy(file=routes_raw["file"], data_access=routes_raw["data_access"]) if routes_raw else None

    exclude_paths = tuple(
        ExcludePath(path=entry["path"], reason=entry.get("reason", ""))
        for entry in raw.get("exclude_paths") or []
    )

    return ReviewPolicy(
        project_type=str(raw["project_type"]),
        language=str(raw["language"]),
        schema=schema,
        multi_tenancy=multi_tenancy,
        auth=auth,
        testing=testing,
        routes=routes,
        exclude_paths=exclude_paths,
        conventions=tuple(str(c) for c in raw.get("conventions") or ()),
    )


# --- Tool settings ---


def load_settings(
    config_path: Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> Settings:
    """Load settings from file and environment.

    Precedence (highest first): explicit overrides, config file,
    environment variables, built-in defaults.

    Args:
        config_path: Optional path to a YAML settings file
        overrides: Values from the command line; ``None`` values are ignored

    Returns:
        Loaded settings
    """
    raw_config: dict[str, Any] = {}
    if config_path is not None:
        try:
            with open(config_path) as f:
                raw_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot load settings {config_path}: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigurationError(f"Settings {config_path} must be a mapping")
    for key in ("model", "github", "review"):
        if raw_config.get(key) is not None and not isinstance(raw_config[key], dict):
            raise ConfigurationError(f"'{key}' must be a mapping in {config_path}")

    # Expand environment variables
    raw_config = _expand_env_vars(raw_config)

    settings = _parse_settings(raw_config)
    if overrides:
        _apply_overrides(settings, overrides)
    return settings


def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand environment variables in config."""
    if isinstance(obj, str):
        if obj.startswith("${") and obj.endswith("}"):
            env_var = obj[2:-1]
            return os.environ.get(env_var, "")
        return obj
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj


def _parse_settings(raw: dict[str, Any]) -> Settings:
    """Parse raw settings dict into a Settings object."""
    model_raw = raw.get("model") or {}
    model = ModelSettings(
        api_key=model_raw.get("api_key") or os.environ.get("OPENAI_API_KEY", ""),
        model=model_raw.get("name") or DEFAULT_MODEL,
        base_url=model_raw.get("base_url", DEFAULT_MODEL_BASE_URL),
        timeout_seconds=model_raw.get("timeout_seconds", 300),
        fix_max_tokens=model_raw.get("fix_max_tokens", 4096),
    )

    github_raw = raw.get("github") or {}
    github = GitHubSettings(
        token=github_raw.get("token") or os.environ.get("GITHUB_TOKEN", ""),
        base_url=github_raw.get("base_url"),
    )

    review_raw = raw.get("review") or {}
    review = ReviewSettings(
        auto_fix=review_raw.get("auto_fix", True),
        auto_merge=review_raw.get("auto_merge", True),
        status_context=review_raw.get("status_context", DEFAULT_STATUS_CONTEXT),
    )

    return Settings(model=model, github=github, review=review)


def _apply_overrides(settings: Settings, overrides: dict[str, Any]) -> None:
    """Apply command-line overrides in place."""
    if overrides.get("openai_api_key"):
        settings.model.api_key = overrides["openai_api_key"]
    if overrides.get("model"):
        settings.model.model = overrides["model"]
    if overrides.get("github_token"):
        settings.github.token = overrides["github_token"]
    if overrides.get("auto_fix") is not None:
        settings.review.auto_fix = overrides["auto_fix"]
    if overrides.get("auto_merge") is not None:
        settings.review.auto_merge = overrides["auto_merge"]


def validate_settings(settings: Settings) -> list[str]:
    """Validate settings and return list of errors.

    Args:
        settings: Settings to validate

    Returns:
        List of validation error messages (empty if valid)
    """
    errors = []

    if not settings.model.api_key:
        errors.append("Missing model API key (set OPENAI_API_KEY or model.api_key)")

    if not settings.github.token:
        errors.append("Missing GitHub token (set GITHUB_TOKEN or github.token)")

    if not settings.model.model:
        errors.append("Missing model name")

    return errors
