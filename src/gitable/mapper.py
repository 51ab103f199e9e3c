from __future__ import annotations

from collections.abc import Callable

from .models import ISSUE_TYPE, MERGED_STATE, PULL_REQUEST_TYPE, FieldSet, RemoteIssue

MergeCheck = Callable[[str, str, int], bool]


def map_issue(issue: RemoteIssue, reference: str, is_merged: MergeCheck) -> FieldSet:
    """Translate a fetched issue into the table's field schema.

    The issue payload cannot tell a merged pull request from one closed
    without merging, so closed pull requests cost one extra merge lookup.
    """
    state = issue.state
    issue_type = ISSUE_TYPE
    if issue.is_pull_request:
        issue_type = PULL_REQUEST_TYPE
        if state == "closed" and is_merged(issue.owner, issue.repo, issue.number):
            state = MERGED_STATE

    return FieldSet(
        Reference=reference,
        Title=issue.title,
        Body=issue.body,
        State=state,
        Author=issue.author,
        Type=issue_type,
        Labels=sorted(issue.labels),
        Comments=issue.comments,
        URL=issue.url,
        Updated=issue.updated_at,
        Created=issue.created_at,
        Completed=issue.closed_at,
        Repository=issue.repo,
    )


__all__ = ["map_issue", "MergeCheck"]
