"""
Request DTOs for profile endpoints.

AboutMeRequest       - POST /auth/add-about-me
MobileNumberRequest  - POST /auth/add-mobile-number

The profile picture is uploaded as multipart form data, not JSON.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class AboutMeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    about_me: str = Field(alias="aboutMe")


class MobileNumberRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    phone: str = Field(alias="mobileNumber")
