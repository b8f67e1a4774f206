from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ApiError(BaseModel):
    code: str
    message: str
    retryable: bool = False
    details: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    error: ApiError


class Link(BaseModel):
    href: str


class Resource(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    links: dict[str, Link] = Field(alias="_links")


class UserResource(Resource):
    name: str
    userType: str
    imageUrl: str | None = None


class DefectResource(Resource):
    created: str
    status: str
    createdBy: str
    createdByUrl: str
    summary: str | None = None
    modified: str | None = None
    severity: str | None = None
    assignedTo: str | None = None
    assignedToUrl: str | None = None


class UserCollection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    embedded: dict[str, list[UserResource]] = Field(alias="_embedded")
    links: dict[str, Link] = Field(alias="_links")


class DefectCollection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    embedded: dict[str, list[DefectResource]] = Field(alias="_embedded")
    links: dict[str, Link] = Field(alias="_links")


class RootResource(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    links: dict[str, Link] = Field(alias="_links")
