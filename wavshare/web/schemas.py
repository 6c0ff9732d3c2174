"""
Request bodies of the REST API.

Field names on the wire are camelCase; Python attributes are snake_case.
Strict types keep `"1"` or `true` from passing as an index or id.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PostIdBody(_Body):
    post_id: StrictInt = Field(alias="postId")


class ReorderBody(_Body):
    from_index: StrictInt = Field(alias="fromIndex")
    to_index: StrictInt = Field(alias="toIndex")


class QueueSettingsBody(_Body):
    shuffle_mode: StrictBool | None = Field(default=None, alias="shuffleMode")
    # Validated by the queue service so the error message names the accepted values
    repeat_mode: str | None = Field(default=None, alias="repeatMode")


class PlaylistToQueueBody(_Body):
    shuffle: StrictBool = False
    play_next: StrictBool = Field(default=False, alias="playNext")


class PlaylistCreateBody(_Body):
    name: str
    description: str | None = None
    is_public: StrictBool = Field(default=False, alias="isPublic")


class PlaylistUpdateBody(_Body):
    name: str | None = None
    description: str | None = None
    is_public: StrictBool | None = Field(default=None, alias="isPublic")
