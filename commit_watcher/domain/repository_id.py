"""Parsing of user supplied repository references into canonical identifiers."""

import re
from dataclasses import dataclass

from commit_watcher.domain.errors import InvalidRepositoryId

_URL_PREFIX = re.compile(r"^https?://(www\.)?github\.com/", re.IGNORECASE)
_OWNER_PATTERN = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?$")
_NAME_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")


@dataclass(frozen=True)
class RepositoryId:
    """Owner and name of a repository on the hosting service."""
    
    owner: str
    name: str
    
    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"
    
    @property
    def url(self) -> str:
        return f"https://github.com/{self.full_name}"
    
    def __str__(self) -> str:
        return self.full_name


def parse_repository_id(reference: str) -> RepositoryId:
    """
    Normalize a repository reference.
    
    Accepted forms:
        owner/name
        owner name
        https://github.com/owner/name (optionally with trailing "/" or ".git")
    
    Args:
        reference: Raw reference as typed by a subscriber
        
    Returns:
        The parsed repository identifier, casing preserved
        
    Raises:
        InvalidRepositoryId: If the reference does not contain a non-empty owner and name
    """
    text = (reference or "").strip()
    if not text:
        raise InvalidRepositoryId("Repository reference is empty")
    
    if _URL_PREFIX.match(text):
        path = _URL_PREFIX.sub("", text).rstrip("/")
        if path.endswith(".git"):
            path = path[:-len(".git")]
        parts = path.split("/")
    elif "/" in text:
        parts = text.split("/")
    else:
        parts = text.split()
    
    if len(parts) != 2:
        raise InvalidRepositoryId(f"Expected owner/name, got: {reference!r}")
    
    owner, name = (part.strip() for part in parts)
    if not owner or not name:
        raise InvalidRepositoryId(f"Owner and name must be non-empty: {reference!r}")
    if not _OWNER_PATTERN.match(owner):
        raise InvalidRepositoryId(f"Invalid owner: {owner!r}")
    if not _NAME_PATTERN.match(name) or name in (".", ".."):
        raise InvalidRepositoryId(f"Invalid repository name: {name!r}")
    
    return RepositoryId(owner=owner, name=name)
