"""Comment thread assembly."""

from typing import Dict, List, Sequence

from stageflow.models.task_comment import TaskComment
from stageflow.schemas.comment import CommentThread


def build_comment_threads(comments: Sequence[TaskComment]) -> List[CommentThread]:
    """
    Nest replies under their parent comment.

    Input order is preserved at every level. A reply whose parent is gone is
    shown as a top-level comment.
    """
    nodes: Dict = {}
    for comment in comments:
        nodes[comment.id] = CommentThread.model_validate(comment)

    roots: List[CommentThread] = []
    for comment in comments:
        node = nodes[comment.id]
        parent = nodes.get(comment.parent_id) if comment.parent_id else None
        if parent is None or parent is node:
            roots.append(node)
        else:
            parent.replies.append(node)
    return roots
