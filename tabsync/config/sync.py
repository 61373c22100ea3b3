from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class SyncConfig(BaseModel):
    """Workspace sync tuning: batching, timeouts and debounce."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    batch_size: int = Field(default=10, validation_alias="SYNC_BATCH_SIZE")
    batch_delay_ms: int = Field(default=200, validation_alias="SYNC_BATCH_DELAY_MS")
    tab_load_timeout_ms: int = Field(default=3000, validation_alias="SYNC_TAB_LOAD_TIMEOUT_MS")
    debounce_ms: int = Field(default=300, validation_alias="SYNC_DEBOUNCE_MS")
    max_tree_depth: int = Field(default=32, validation_alias="SYNC_MAX_TREE_DEPTH")
    preserve_renamed_titles: bool = Field(
        default=True, validation_alias="SYNC_PRESERVE_RENAMED_TITLES"
    )

    @field_validator("batch_size", mode="before")
    @classmethod
    def _validate_batch_size(cls, value: Any) -> int:
        try:
            parsed = int(str(value if value not in (None, "") else 10))
        except ValueError as exc:
            msg = "Sync batch size must be a valid integer"
            raise ValueError(msg) from exc
        if parsed < 1 or parsed > 100:
            msg = "Sync batch size must be between 1 and 100"
            raise ValueError(msg)
        return parsed

    @field_validator("batch_delay_ms", "tab_load_timeout_ms", "debounce_ms", mode="before")
    @classmethod
    def _validate_milliseconds(cls, value: Any, info: ValidationInfo) -> int:
        default = cls.model_fields[info.field_name].default
        try:
            parsed = int(str(value if value not in (None, "") else default))
        except ValueError as exc:
            msg = f"{info.field_name.replace('_', ' ')} must be a valid integer"
            raise ValueError(msg) from exc
        if parsed < 0:
            msg = f"{info.field_name.replace('_', ' ').capitalize()} must not be negative"
            raise ValueError(msg)
        if parsed > 60_000:
            msg = f"{info.field_name.replace('_', ' ').capitalize()} too large (max 60000 ms)"
            raise ValueError(msg)
        return parsed

    @field_validator("max_tree_depth", mode="before")
    @classmethod
    def _validate_max_tree_depth(cls, value: Any) -> int:
        try:
            parsed = int(str(value if value not in (None, "") else 32))
        except ValueError as exc:
            msg = "Max tree depth must be a valid integer"
            raise ValueError(msg) from exc
        if parsed < 2 or parsed > 256:
            msg = "Max tree depth must be between 2 and 256"
            raise ValueError(msg)
        return parsed

    @property
    def batch_delay_seconds(self) -> float:
        return self.batch_delay_ms / 1000

    @property
    def tab_load_timeout_seconds(self) -> float:
        return self.tab_load_timeout_ms / 1000

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000
