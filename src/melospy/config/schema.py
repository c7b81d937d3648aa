"""Pydantic models for melos.yaml."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_EXEC_CONCURRENCY = 5


class _MelosModel(BaseModel):
    """Base model accepting both camelCase (melos.yaml) and snake_case keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class PackageFilters(_MelosModel):
    """Package selection criteria from ``packageFilters`` or CLI flags.

    Attributes:
        scope: Only include packages matching these names or globs.
        ignore: Exclude packages matching these names or globs.
        flutter: Only Flutter packages (True) or only Dart packages (False).
        dir_exists: Only packages containing this directory.
        file_exists: Only packages containing this file.
        depends_on: Only packages depending on all of these packages.
        no_depends_on: Exclude packages depending on any of these packages.
        no_private: Exclude private packages.
        published: Only publishable (True) or only private (False) packages.
        include_dependencies: Add transitive dependencies of matches.
        include_dependents: Add transitive dependents of matches.
    """

    scope: list[str] | None = None
    ignore: list[str] | None = None
    flutter: bool | None = None
    dir_exists: str | None = None
    file_exists: str | None = None
    depends_on: list[str] | None = None
    no_depends_on: list[str] | None = None
    no_private: bool = False
    published: bool | None = None
    include_dependencies: bool = False
    include_dependents: bool = False

    @field_validator("scope", "ignore", "depends_on", "no_depends_on", mode="before")
    @classmethod
    def _split_string(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [p.strip() for p in value.split(",") if p.strip()]
        return value

    def is_empty(self) -> bool:
        """True if no criteria are set."""
        return self == PackageFilters()


class ExecOptions(_MelosModel):
    """Options for per-package script execution."""

    concurrency: int = Field(default=DEFAULT_EXEC_CONCURRENCY, ge=1)
    fail_fast: bool = False
    order_dependents: bool = False


class BootstrapCommandConfig(_MelosModel):
    """Settings under ``command.bootstrap``."""

    run_pub_get_in_parallel: bool = True
    enforce_lockfile: bool = False
    run_pub_get_offline: bool = False


class CommandConfig(_MelosModel):
    """Per-command settings under ``command``."""

    bootstrap: BootstrapCommandConfig = Field(default_factory=BootstrapCommandConfig)


class ScriptConfig(_MelosModel):
    """A named script.

    Exactly one execution shape is used, in priority order: ``steps``,
    ``exec``, then ``run``.

    Attributes:
        run: Shell command, or the per-package command when ``exec`` holds options.
        exec: Per-package command string, or per-package execution options.
        steps: Ordered script names or shell commands.
        description: Human readable description.
        package_filters: Packages the script applies to.
        env: Extra environment variables.
        private: Hidden from script listings.
        groups: Groups for ``run --group`` filtering.
    """

    run: str = ""
    exec: str | ExecOptions | None = None
    steps: list[str] | None = None
    description: str | None = None
    package_filters: PackageFilters | None = None
    env: dict[str, str] = Field(default_factory=dict)
    private: bool = False
    groups: list[str] = Field(default_factory=list)

    @field_validator("env", mode="before")
    @classmethod
    def _stringify_env(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {str(k): "" if v is None else str(v) for k, v in value.items()}
        return value

    @property
    def exec_command(self) -> str | None:
        """Per-package command, if the script uses exec config."""
        if isinstance(self.exec, str):
            return self.exec
        if isinstance(self.exec, ExecOptions) and self.run.strip():
            return self.run
        return None

    @property
    def exec_options(self) -> ExecOptions:
        if isinstance(self.exec, ExecOptions):
            return self.exec
        return ExecOptions()

    @property
    def run_command(self) -> str | None:
        return self.run if self.run.strip() else None

    def in_group(self, group: str) -> bool:
        return group in self.groups


class MelosConfig(_MelosModel):
    """Root of melos.yaml.

    Attributes:
        name: Workspace name.
        packages: Glob patterns locating packages.
        scripts: Named scripts.
        sdk_path: Optional Dart/Flutter SDK path.
        command: Per-command settings.
    """

    name: str = "workspace"
    packages: list[str] = Field(default_factory=lambda: ["packages/**"])
    scripts: dict[str, ScriptConfig] = Field(default_factory=dict)
    sdk_path: str | None = None
    command: CommandConfig = Field(default_factory=CommandConfig)

    @field_validator("scripts", mode="before")
    @classmethod
    def _expand_shorthand(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, dict):
            return {
                str(name): {"run": entry} if isinstance(entry, str) else entry
                for name, entry in value.items()
            }
        return value

    @property
    def script_names(self) -> list[str]:
        return sorted(self.scripts)

    def get_script(self, name: str) -> ScriptConfig | None:
        return self.scripts.get(name)
