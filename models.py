from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List
from config import (TEXT_MIN_LENGTH, TEXT_MAX_LENGTH, BOARD_NAME_MIN_LENGTH, BOARD_NAME_MAX_LENGTH,
                    DELETE_PASSWORD_MIN_LENGTH, DELETE_PASSWORD_MAX_LENGTH)


def _check_board(v):
    if len(v) < BOARD_NAME_MIN_LENGTH or len(v) > BOARD_NAME_MAX_LENGTH:
        raise ValueError(f'Board name must be {BOARD_NAME_MIN_LENGTH}-{BOARD_NAME_MAX_LENGTH} characters')
    return v


def _check_text(v):
    if len(v) < TEXT_MIN_LENGTH or len(v) > TEXT_MAX_LENGTH:
        raise ValueError(f'Text must be {TEXT_MIN_LENGTH}-{TEXT_MAX_LENGTH} characters')
    return v


def _check_password(v):
    if len(v) < DELETE_PASSWORD_MIN_LENGTH or len(v.encode('utf-8')) > DELETE_PASSWORD_MAX_LENGTH:
        raise ValueError(f'Delete password must be {DELETE_PASSWORD_MIN_LENGTH}-{DELETE_PASSWORD_MAX_LENGTH} bytes')
    return v


# Request inputs, one per operation

class BoardRequest(BaseModel):
    board: str

    @field_validator('board')
    @classmethod
    def validate_board(cls, v):
        return _check_board(v)

class ThreadCreate(BoardRequest):
    text: str
    delete_password: str

    @field_validator('text')
    @classmethod
    def validate_text(cls, v):
        return _check_text(v)

    @field_validator('delete_password')
    @classmethod
    def validate_delete_password(cls, v):
        return _check_password(v)

class ThreadTarget(BoardRequest):
    thread_id: str

class ThreadDelete(ThreadTarget):
    delete_password: str

    @field_validator('delete_password')
    @classmethod
    def validate_delete_password(cls, v):
        return _check_password(v)

class ReplyCreate(ThreadTarget):
    text: str
    delete_password: str

    @field_validator('text')
    @classmethod
    def validate_text(cls, v):
        return _check_text(v)

    @field_validator('delete_password')
    @classmethod
    def validate_delete_password(cls, v):
        return _check_password(v)

class ReplyTarget(ThreadTarget):
    reply_id: str

class ReplyDelete(ReplyTarget):
    delete_password: str

    @field_validator('delete_password')
    @classmethod
    def validate_delete_password(cls, v):
        return _check_password(v)


# Read models. Hidden fields (board, reported, delete_password) are never declared.

class ReplyResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    thread_id: str
    text: str
    created_on: float
    deleted_on: Optional[float] = None

class FullThread(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    text: str
    created_on: float
    bumped_on: float
    deleted_on: Optional[float] = None
    replies: List[ReplyResponse] = []

class ThreadSummary(FullThread):
    """Board listing entry: a bounded preview of replies plus the full active count"""
    replycount: int = 0

class MessageResponse(BaseModel):
    success: bool = True
    message: str = "success"

class ErrorResponse(BaseModel):
    success: bool = False
    error: str
