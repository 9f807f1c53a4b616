"""Pydantic settings models for chatdispatch.

ClientSettings configures a CommandClient; MenuSettings holds defaults
for interactive menus. Both are usually built by Config from
settings.yaml, but can be constructed directly.
"""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .commands.registry import DEFAULT_INDEX_LIMIT


def is_safe_id(value: str) -> bool:
    """Whether ``value`` is a non-negative 64-bit integer id."""
    if not value or not value.isdigit():
        return False
    return int(value) <= 2**63 - 1


class ClientSettings(BaseModel):
    """Settings for the command client.

    ``prefix = None`` means the bot responds to mentions instead.
    """

    owner_id: str = Field(..., min_length=1, description="Snowflake id of the bot owner")
    co_owner_ids: List[str] = Field(default_factory=list)
    prefix: Optional[str] = None
    help_word: str = "help"
    use_help: bool = True
    success: str = ""
    warning: str = ""
    error: str = ""
    server_invite: Optional[str] = None
    game: Optional[str] = Field(
        default=None, description="Presence text; 'default' shows 'Type <prefix>help'"
    )
    linked_cache_size: int = Field(default=0, ge=0)
    index_limit: int = Field(default=DEFAULT_INDEX_LIMIT, ge=0)
    carbon_key: Optional[str] = None
    bots_key: Optional[str] = None

    @field_validator("prefix")
    @classmethod
    def _prefix_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("prefix must not be blank; use null for mention prefix")
        return v

    @field_validator("help_word")
    @classmethod
    def _help_word_single_token(cls, v: str) -> str:
        if not v or any(c.isspace() for c in v):
            raise ValueError("help_word must be a single word")
        return v


class MenuSettings(BaseModel):
    """Defaults for interactive menus (slideshows)."""

    timeout_seconds: float = Field(default=60.0, gt=0)
    show_page_numbers: bool = True
    wait_on_single_page: bool = False
