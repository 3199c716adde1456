"""
Bundled fallback content

Read-only data shipped with the service, served when the hosted backend
is unconfigured or failing. Never used for admin writes.
"""

import json
from functools import cached_property
from pathlib import Path
from typing import Any, Dict, List, Optional

DATA_DIR = Path(__file__).resolve().parent / "data"


class FallbackData:
    def __init__(self, data_dir: Path = DATA_DIR):
        self.data_dir = Path(data_dir)

    def _load(self, name: str) -> Any:
        with open(self.data_dir / name, encoding="utf-8") as fh:
            return json.load(fh)

    @cached_property
    def profile(self) -> Dict[str, Any]:
        return self._load("user.json")

    @cached_property
    def projects(self) -> List[Dict[str, Any]]:
        return self._load("projects.json")

    @cached_property
    def experiences(self) -> List[Dict[str, Any]]:
        return self._load("experiences.json")

    @cached_property
    def blog_posts(self) -> List[Dict[str, Any]]:
        return [post for post in self._load("blogs.json") if post.get("status") == "published"]

    def featured_projects(self) -> List[Dict[str, Any]]:
        return [p for p in self.projects if p.get("featured")]

    def projects_by_category(self, category: str) -> List[Dict[str, Any]]:
        if category == "all":
            return self.projects
        return [p for p in self.projects if p.get("category") == category]

    def find_post(self, identifier: str) -> Optional[Dict[str, Any]]:
        for post in self.blog_posts:
            if post.get("id") == identifier or post.get("slug") == identifier:
                return post
        return None


fallback_data = FallbackData()


def get_fallback() -> FallbackData:
    return fallback_data
