"""Pydantic schemas for serialising expense API payloads.

Wire names are camelCase (``accountType``, ``createdAt``, ``totalPages``);
Python attributes stay snake_case and either spelling is accepted on input.
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ORMModel(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class UserRegister(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class UserLogin(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class UserRead(ORMModel):
    id: str
    username: str
    email: str
    created_at: datetime
    updated_at: datetime


class UserEnvelope(BaseModel):
    user: UserRead
    message: str


class LoginRead(CamelModel):
    user: UserRead
    access_token: str
    message: str


class ExpenseFields(CamelModel):
    # Everything optional: presence is checked by the service layer so a
    # missing field is answered with 400 rather than a schema error.
    amount: Optional[float] = None
    account_type: Optional[str] = None
    expense_type: Optional[str] = None
    category: Optional[str] = None


class ExpenseCreate(ExpenseFields):
    description: Optional[str] = None


class ExpenseUpdate(ExpenseFields):
    pass


class ExpenseRead(ORMModel):
    id: str
    amount: Optional[float] = None
    account_type: Optional[str] = None
    expense_type: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    author: Optional[str] = Field(None, validation_alias=AliasChoices("author_id", "author"))
    created_at: datetime
    updated_at: datetime


class ExpenseEnvelope(BaseModel):
    expense: ExpenseRead
    message: str


class ExpensePageRead(CamelModel):
    data: List[ExpenseRead]
    total_pages: int
    page: int
    total_elements: int
    message: str


class DeletedRead(BaseModel):
    deleted: bool
    message: str
