from pydantic import BaseModel, EmailStr, Field
from typing import Literal, Optional
import datetime


class SignupBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    role: Literal['customer', 'admin', 'manager'] = 'customer'


class SignupCreate(SignupBase):
    pass


class User(SignupBase):
    id: int
    created_at: datetime.datetime

    model_config = {"from_attributes": True}


class SignupResult(User):
    # only returned once, on signup
    api_token: str


class Notification(BaseModel):
    id: int
    type: str
    title: str
    body: str
    action_ref: Optional[str] = None
    read_at: Optional[datetime.datetime] = None
    created_at: datetime.datetime

    model_config = {"from_attributes": True}
