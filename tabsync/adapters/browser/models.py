"""Pydantic models for records handed over by the browser binding."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Chrome reports ungrouped tabs with groupId == -1.
TAB_GROUP_ID_NONE = -1


class Tab(BaseModel):
    """One browser tab."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int | None = None
    window_id: int | None = Field(default=None, alias="windowId")
    index: int = 0
    url: str | None = None
    title: str | None = None
    pinned: bool = False
    group_id: int = Field(default=TAB_GROUP_ID_NONE, alias="groupId")
    status: str | None = None
    active: bool = False
    discarded: bool = False
    fav_icon_url: str | None = Field(default=None, alias="favIconUrl")

    @field_validator("group_id", mode="before")
    @classmethod
    def _none_means_ungrouped(cls, value: Any) -> Any:
        return TAB_GROUP_ID_NONE if value is None else value

    @property
    def is_grouped(self) -> bool:
        return self.group_id != TAB_GROUP_ID_NONE


class TabGroup(BaseModel):
    """One tab group inside a window."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    window_id: int | None = Field(default=None, alias="windowId")
    title: str = ""
    color: str = "grey"
    collapsed: bool = False

    @field_validator("title", mode="before")
    @classmethod
    def _title_or_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class BookmarkNode(BaseModel):
    """Node of the bookmark tree: a bookmark when ``url`` is set, else a folder."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    parent_id: str | None = Field(default=None, alias="parentId")
    index: int | None = None
    title: str = ""
    url: str | None = None
    children: list[BookmarkNode] | None = None

    @field_validator("id", "parent_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        # Some bindings hand out numeric ids; the bookmark id space is strings.
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("title", mode="before")
    @classmethod
    def _title_or_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def is_folder(self) -> bool:
        return self.url is None


class Window(BaseModel):
    """One browser window."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int | None = None
    focused: bool = False
    type: str = "normal"
    tabs: list[Tab] | None = None
