"""Shared Pydantic schemas for common API elements."""
from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

WALLET_REGEX = r"^0x[a-fA-F0-9]{40}$"

DataT = TypeVar("DataT")


class ApiModel(BaseModel):
    """Base for request/response bodies, exchanged in camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiResponse(ApiModel, Generic[DataT]):
    """Success envelope wrapping every endpoint payload."""

    success: bool = True
    data: DataT


class WalletRequest(ApiModel):
    """Request carrying a single wallet address."""

    wallet: str = Field(..., pattern=WALLET_REGEX, description="0x-prefixed wallet address")


class MessageData(ApiModel):
    """Plain acknowledgement."""

    message: str
