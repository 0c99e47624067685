"""Configuration for the skills installer."""

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings

from skills_installer.models import ResourceKind


class Settings(BaseSettings):
    """Installer configuration loaded from environment and .env file."""

    # GitHub contents API (catalog listing + raw file fetch)
    github_api_url: str = "https://api.github.com"
    github_clone_base: str = "https://github.com"
    request_timeout: float = 30.0
    user_agent: str = "skills-installer"

    # Read from GITHUB_TOKEN or GH_TOKEN; keep it out of version control
    github_token: str = Field(
        default="",
        validation_alias=AliasChoices(
            "GITHUB_TOKEN", "GH_TOKEN", "SKILLS_INSTALLER_GITHUB_TOKEN"
        ),
    )
    # Fall back to `gh auth token` when no token is set in the environment
    use_gh_cli: bool = True
    gh_executable: str = "gh"
    gh_timeout: float = 10.0

    git_executable: str = "git"

    # Conventional install locations, relative to the project root
    skill_paths: list[str] = [".github/skills/", ".claude/skills/", ".codex/skills/"]
    subagent_paths: list[str] = [".github/agents/", ".claude/agents/", ".codex/agents/"]

    # Logging stays quiet by default so the interactive UI is not interleaved
    log_level: str = "WARNING"
    log_file: Path | None = None

    model_config = {
        "env_prefix": "SKILLS_INSTALLER_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    def conventional_paths(self, kind: ResourceKind) -> list[str]:
        """Return the conventional install paths for a resource kind."""
        if kind is ResourceKind.SKILL:
            return list(self.skill_paths)
        return list(self.subagent_paths)


settings = Settings()
