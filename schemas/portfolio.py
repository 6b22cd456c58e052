"""Owner portfolio schemas."""

from typing import Optional
from pydantic import BaseModel, Field


class About(BaseModel):
    name: str = ""
    tagline: str = ""
    title: str = ""
    location: str = ""
    education: str = ""
    current_work: str = ""
    philosophy: str = ""


class Project(BaseModel):
    name: str
    description: str = ""
    users: Optional[str] = None
    followers: Optional[str] = None
    years: Optional[int] = None
    tech: list[str] = Field(default_factory=list)
    url: Optional[str] = None
    link: Optional[str] = None
    highlight: bool = False


class Skills(BaseModel):
    backend: list[str] = Field(default_factory=list)
    frontend: list[str] = Field(default_factory=list)
    infrastructure: list[str] = Field(default_factory=list)
    concepts: list[str] = Field(default_factory=list)


class SocialLink(BaseModel):
    name: str
    url: str = ""
    link: str = ""


class Portfolio(BaseModel):
    """Owner profile used by the get_owner_info tool and /api/owner."""
    about: About = Field(default_factory=About)
    projects: list[Project] = Field(default_factory=list)
    skills: Skills = Field(default_factory=Skills)
    social: list[SocialLink] = Field(default_factory=list)


class OwnerInfo(BaseModel):
    """Public owner card served by /api/owner."""
    name: str
    tagline: str
    social: list[SocialLink] = Field(default_factory=list)
