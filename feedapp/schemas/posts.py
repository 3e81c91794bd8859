from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from typing import List

# Responses keep the JSON field names the web client already reads
# (_id, imageUrl, createdAt, totalItems); fields also accept their python names.


class PostIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1)
    content: str = Field(min_length=1)


class CreatorOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int = Field(alias='_id')
    name: str


class PostOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int = Field(alias='_id')
    title: str
    content: str
    image_url: str = Field(alias='imageUrl')
    creator: CreatorOut
    created_at: datetime = Field(alias='createdAt')
    updated_at: datetime = Field(alias='updatedAt')

    def as_event(self) -> dict:
        return self.model_dump(mode='json', by_alias=True)


class PostsPageOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    posts: List[PostOut]
    total_items: int = Field(alias='totalItems')


class PostEnvelopeOut(BaseModel):
    message: str
    post: PostOut


class PostCreatedOut(BaseModel):
    message: str
    post: PostOut
    creator: CreatorOut


class MessageOut(BaseModel):
    message: str
