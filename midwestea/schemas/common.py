# midwestea/schemas/common.py
# Base models shared by request/response schemas
#
# The checkout site and admin app send camelCase keys; CamelModel accepts
# both camelCase and snake_case and dumps camelCase with by_alias=True.

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class SuccessResponse(BaseModel):
    success: bool = True


class ReceivedResponse(BaseModel):
    received: bool = True
    processed: Optional[bool] = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str
