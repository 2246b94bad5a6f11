"""Reply trees for comments."""

from collections.abc import Iterable
from dataclasses import dataclass, field

from idea_manager.models import Comment


@dataclass
class CommentNode:
    comment: Comment
    replies: list["CommentNode"] = field(default_factory=list)

    def walk(self, depth: int = 0):
        """Yield (depth, comment) pairs depth-first."""
        yield depth, self.comment
        for reply in self.replies:
            yield from reply.walk(depth + 1)


def build_comment_tree(comments: Iterable[Comment]) -> list[CommentNode]:
    """Group a flat comment list into reply trees.

    Order within each level follows the input. Comments whose parent is not
    in the list become roots.
    """
    comments = list(comments)
    nodes = {comment.id: CommentNode(comment) for comment in comments}
    roots: list[CommentNode] = []
    for comment in comments:
        node = nodes[comment.id]
        parent = nodes.get(comment.parent_id) if comment.parent_id is not None else None
        if parent is None or parent is node:
            roots.append(node)
        else:
            parent.replies.append(node)
    return roots
