from .git import MISSING_REPO, GitRepository, GitSvnRepository, guess_repo_type, open_repository

__all__ = ["MISSING_REPO", "GitRepository", "GitSvnRepository", "guess_repo_type", "open_repository"]
