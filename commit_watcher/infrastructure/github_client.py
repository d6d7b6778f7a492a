"""GitHub REST API client answering the watcher's read-only queries."""

import logging
import os
from datetime import datetime
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote

import requests

from commit_watcher.domain.errors import RateLimitExceeded, TransientQueryFailure
from commit_watcher.domain.watched_repository import CommitInfo

logger = logging.getLogger(__name__)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Unparseable commit timestamp: {value!r}")
        return None


class GitHubClient:
    """Client for the GitHub REST API.
    
    "Not found" answers are returned as False/None. Every other failure
    (network, authentication, rate limit, server error) raises
    TransientQueryFailure so callers never mistake an outage for a missing
    repository. Requests are not retried; the next detection cycle retries.
    """
    
    API_URL = "https://api.github.com"
    DEFAULT_TIMEOUT_SECONDS = 10
    
    def __init__(
        self,
        token: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize GitHub client.
        
        Args:
            token: GitHub personal access token. If None, uses GITHUB_TOKEN env var.
            api_url: API root, defaults to the public GitHub API
            timeout: Timeout in seconds applied to every request
            session: Optional pre-built session (used by tests)
        """
        if token is None:
            token = os.getenv("GITHUB_TOKEN")
        
        self.token = token
        self.api_url = (api_url or self.API_URL).rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        })
        
        if self.token:
            self.session.headers["Authorization"] = f"Bearer {self.token}"
    
    def close(self):
        self.session.close()
    
    def _get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        allowed_statuses: Tuple[int, ...] = (200, 404),
    ) -> requests.Response:
        """
        Issue a GET request and classify transport-level failures.

        Args:
            path: Path below the API root
            params: Query string parameters
            allowed_statuses: Statuses handed back to the caller instead of raising

        Returns:
            The response, whose status is one of allowed_statuses
            
        Raises:
            RateLimitExceeded: If the API quota is exhausted
            TransientQueryFailure: On network errors and any other status
        """
        url = f"{self.api_url}{path}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise TransientQueryFailure(f"GET {path} failed: {e}") from e
        
        if response.status_code in allowed_statuses:
            return response
        
        if response.status_code == 401:
            raise TransientQueryFailure("Authentication failed. Check your GitHub token.")
        
        if response.status_code in (403, 429):
            remaining = response.headers.get("X-RateLimit-Remaining")
            if response.status_code == 429 or remaining == "0":
                reset_time = int(response.headers.get("X-RateLimit-Reset", 0)) or None
                logger.warning(f"GitHub rate limit exceeded (resets at {reset_time})")
                raise RateLimitExceeded("Rate limit exceeded", reset_at=reset_time)
            raise TransientQueryFailure(f"Forbidden: {response.text}")
        
        raise TransientQueryFailure(f"GET {path} returned HTTP {response.status_code}")
    
    def _json(self, response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise TransientQueryFailure(f"Invalid JSON from {response.url}: {e}") from e
    
    def user_exists(self, username: str) -> bool:
        """Return True unless GitHub reports the user as not found."""
        response = self._get(f"/users/{quote(username, safe='')}")
        return response.status_code == 200
    
    def repository_exists(self, owner: str, name: str) -> bool:
        """Return True unless GitHub reports the repository as not found."""
        response = self._get(f"/repos/{quote(owner, safe='')}/{quote(name, safe='')}")
        return response.status_code == 200
    
    def latest_commit(self, owner: str, name: str) -> Optional[CommitInfo]:
        """
        Fetch the most recent commit on the default branch.
        
        Args:
            owner: Repository owner
            name: Repository name
            
        Returns:
            The latest commit, or None if the repository has no commits or is gone
        """
        response = self._get(
            f"/repos/{quote(owner, safe='')}/{quote(name, safe='')}/commits",
            params={"per_page": 1},
            allowed_statuses=(200, 404, 409),
        )
        # GitHub answers 409 "Git Repository is empty" for repositories without commits
        if response.status_code in (404, 409):
            return None
        
        commits = self._json(response)
        if not commits:
            return None
        
        node = commits[0]
        commit = node.get("commit") or {}
        author = commit.get("author") or {}
        
        return CommitInfo(
            sha=node["sha"],
            author_name=author.get("name") or "",
            timestamp=_parse_timestamp(author.get("date")),
            message=commit.get("message") or "",
            url=node.get("html_url") or f"https://github.com/{owner}/{name}/commit/{node['sha']}",
        )
