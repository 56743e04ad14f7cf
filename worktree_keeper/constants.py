"""Shared constants for worktree-keeper."""

import re
from typing import List, Tuple

# Integration branches, highest priority first
INTEGRATION_BRANCHES: Tuple[str, ...] = ("dev", "main", "master")

REMOTE_NAME = "origin"

# Worktree names become part of a branch name and a directory name
NAME_PATTERN = re.compile(r"[A-Za-z0-9_-]+")
REPOSITORY_NAME_PATTERN = re.compile(r"[A-Za-z0-9._-]+")

WORKTREE_DIR_NAME = "Tree"
LOCK_DIR_NAME = ".worktree-locks"

DEFAULT_REPO_ROOT = "/repos"
DEFAULT_GITHUB_ORG = "AutoRemediation"
DEFAULT_CLONE_URL_TEMPLATE = "https://github.com/{org}/{name}"
DEFAULT_GIT_TIMEOUT = 120.0
DEFAULT_CLONE_TIMEOUT = 900.0

# Token files, relative to the repository root, checked in order
TOKEN_FILES: List[str] = [
    "../.github-token",
    "../token",
    "../GITHUB_TOKEN",
    ".github-token",
    "token",
    "GITHUB_TOKEN",
]

# (key env var, default key, name env var, default name)
DEFAULT_REPOSITORIES: List[Tuple[str, str, str, str]] = [
    ("FRONTEND_KEY", "frontend", "FRONTEND_REPO", "sideline-frontend"),
    ("VIEWER_KEY", "viewer", "VIEWER_REPO", "ohif-viewer"),
    ("BACKEND_KEY", "backend", "BACKEND_REPO", "sideline-backend"),
]

# Branch ordering for remote branch listings
LEADING_BRANCHES: Tuple[str, ...] = ("main", "master")
SECONDARY_BRANCHES: Tuple[str, ...] = ("dev", "develop")

GIT_ENV = {"GIT_TERMINAL_PROMPT": "0"}
