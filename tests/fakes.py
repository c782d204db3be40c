from tag_changes.github_client import GithubApiError
from tag_changes.models import ChangeRecord, Tag


class FakeClient:
    """In-memory stand-in for GithubClient that records every call."""

    def __init__(self, tag_pages=None, compare_pages=None, tag_error=None, compare_error=None):
        self.tag_pages = tag_pages or []
        self.compare_pages = compare_pages or []
        self.tag_error = tag_error
        self.compare_error = compare_error
        self.calls = []

    def list_tags(self, owner, repo):
        self.calls.append(("list_tags", owner, repo))
        for page in self.tag_pages:
            yield [Tag(name=n) for n in page]
        if self.tag_error:
            raise self.tag_error

    def compare_refs(self, owner, repo, base, head):
        self.calls.append(("compare_refs", owner, repo, base, head))
        for page in self.compare_pages:
            yield [ChangeRecord(path=p, status=s) for p, s in page]
        if self.compare_error:
            raise self.compare_error


def api_error(message="boom", status=500):
    return GithubApiError(message, status_code=status, details={"message": message})
