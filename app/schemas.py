from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class LinkBase(BaseModel):
    target_url: str

class LinkCreate(LinkBase):
    code: str | None = None

class LinkOut(BaseModel):
    code: str
    target_url: str
    click_count: int
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)

class PaginatedLinks(BaseModel):
    items: list[LinkOut]
    total: int
    skip: int
    limit: int

class Dashboard(BaseModel):
    items: list[LinkOut]
    total_links: int
    total_clicks: int
    click_rate: float

class UserCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=255)
    # bcrypt only looks at the first 72 bytes
    password: str = Field(min_length=6, max_length=72)

class UserOut(BaseModel):
    id: int
    name: str
    email: str

    model_config = ConfigDict(from_attributes=True)

class Token(BaseModel):
    access_token: str
    token_type: str

class MessageOut(BaseModel):
    ok: bool
    detail: str
