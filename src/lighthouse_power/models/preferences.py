from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class Preferences(BaseModel):
    """Display preferences shared with the front ends."""

    model_config = {"extra": "ignore"}

    theme: Literal["dark", "light", "system"] = "dark"
    confirm_clear: bool = True
