from pydantic import BaseModel, ConfigDict, EmailStr, Field


class SignupIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: EmailStr
    name: str = Field(min_length=1)
    password: str = Field(min_length=5)


class LoginIn(BaseModel):
    email: str
    password: str


class SignupOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    user_id: int = Field(alias='userId')


class TokenOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: str
    user_id: int = Field(alias='userId')
