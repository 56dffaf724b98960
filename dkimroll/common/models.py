"""
Pydantic models for settings and persisted key state validation.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, model_validator


class KeyTypeDefinition(BaseModel):
    type: str = ""
    args: list[str] = Field(default_factory=list)


class RolloverSettings(BaseModel):
    """Top-level settings of a rollover run."""

    key_dir: Path
    key_archive: Path | None = None

    # Durations in months
    future_period: int = Field(default=1, gt=0)
    active_period: int = Field(default=3, gt=0)
    expired_period: int = Field(default=1, gt=0)

    active_config: Path | None = None
    future_config: Path | None = None
    expired_config: Path | None = None

    key_types: list[KeyTypeDefinition] = Field(min_length=1)
    domains: list[str] = Field(min_length=1)

    genkey_command: list[str] = Field(
        default_factory=lambda: ["dkimroll", "genkey"], min_length=1
    )
    update_command: list[str] | None = None
    lock_file: Path | None = None

    @model_validator(mode="after")
    def _fill_defaults(self) -> RolloverSettings:
        seen: set[str] = set()
        for domain in self.domains:
            if not domain:
                msg = "Empty domain name"
                raise ValueError(msg)
            if "_" in domain:
                msg = f"Domain name must not contain '_': {domain}"
                raise ValueError(msg)
            if domain in seen:
                msg = f"Duplicate domain: {domain}"
                raise ValueError(msg)
            seen.add(domain)

        if self.active_config is None:
            self.active_config = self.key_dir / "active.json"
        if self.future_config is None:
            self.future_config = self.key_dir / "future.json"
        if self.expired_config is None:
            self.expired_config = self.key_dir / "expired.json"
        if self.lock_file is None:
            self.lock_file = self.key_dir / ".dkimroll.lock"
        return self

    def config_path(self, category: str) -> Path:
        path = getattr(self, f"{category}_config", None)
        if path is None:
            msg = f"Unknown key category: {category}"
            raise ValueError(msg)
        return path


class SelectorEntry(BaseModel):
    path: str
    selector: str


class DomainEntry(BaseModel):
    selectors: list[SelectorEntry] = Field(default_factory=list)


class KeyConfigDocument(BaseModel):
    """On-disk layout of one lifecycle category."""

    domain: dict[str, DomainEntry] = Field(default_factory=dict)


class KeyStatus(BaseModel):
    category: str
    domain: str
    key_type: str | None
    selector: str
    path: str
    age: int | None
    state: str
    error: str | None = None
