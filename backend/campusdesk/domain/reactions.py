"""Reaction toggling - one reaction per user per target"""
from typing import List, Optional

from .models import Reaction, ServiceRequest


def toggle_reaction(
    reactions: Optional[List[Reaction]],
    user_id: str,
    user_name: str,
    emoji: str
) -> List[Reaction]:
    """
    Apply a user's reaction to a reaction list.
    
    - No existing reaction from the user: add it.
    - Same emoji already held by the user: remove it (toggle off).
    - Different emoji: replace the user's reaction.
    
    Returns a new list; the input is not modified.
    """
    updated = list(reactions or [])
    for index, existing in enumerate(updated):
        if existing.user_id != user_id:
            continue
        if existing.emoji == emoji:
            del updated[index]
        else:
            updated[index] = existing.model_copy(update={"emoji": emoji})
        return updated
    
    updated.append(Reaction(emoji=emoji, user_id=user_id, user_name=user_name))
    return updated


def toggle_request_reaction(
    request: ServiceRequest,
    target_id: str,
    user_id: str,
    user_name: str,
    emoji: str
) -> Optional[ServiceRequest]:
    """
    Toggle a reaction on a request or on one of its comments.
    
    The target is the request itself when target_id equals the request ID,
    otherwise the comment with that ID. Returns the updated copy, or None when
    the target does not exist.
    """
    if target_id == request.id:
        return request.model_copy(
            update={"reactions": toggle_reaction(request.reactions, user_id, user_name, emoji)}
        )
    
    if request.find_comment(target_id) is None:
        return None
    
    comments = [
        comment.model_copy(
            update={"reactions": toggle_reaction(comment.reactions, user_id, user_name, emoji)}
        ) if comment.id == target_id else comment
        for comment in request.comments
    ]
    return request.model_copy(update={"comments": comments})
