"""
gitgrub.social
==============

Toggles optimistas de like y follow.

Ambos siguen el mismo patrón:
1) Si ya hay una operación en curso, no se hace nada.
2) Se guarda un snapshot del estado.
3) Se aplica el cambio localmente (optimista).
4) Se llama al backend.
5) Si falla, el estado vuelve exactamente al snapshot y el error se propaga
   para que la capa de arriba lo muestre.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

from supabase import Client

from .backend import execute
from .formatting import format_count

logger = logging.getLogger(__name__)


class ToggleBusyError(RuntimeError):
    """Se pidió un toggle mientras otro seguía en curso."""


@dataclass
class LikeState:
    liked: bool
    count: int

    def as_dict(self) -> Dict[str, Any]:
        return {
            "liked": self.liked,
            "count": self.count,
            "count_label": format_count(self.count),
            "announcement": f"{'Liked' if self.liked else 'Unliked'}. Total likes {self.count}.",
        }


@dataclass
class FollowState:
    following: bool
    follower_count: int

    @property
    def label(self) -> str:
        return "Following" if self.following else "Follow"

    def as_dict(self) -> Dict[str, Any]:
        return {
            "following": self.following,
            "follower_count": self.follower_count,
            "label": self.label,
        }


class _OptimisticToggle:
    def __init__(self):
        self._busy = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._busy.locked()

    def _acquire(self) -> None:
        if not self._busy.acquire(blocking=False):
            raise ToggleBusyError("Toggle already in progress")


class LikeToggle(_OptimisticToggle):
    """
    Like/unlike de una receta.

    El contador real lo mantiene un trigger de la DB sobre `recipe_likes`;
    acá no se vuelve a pedir.
    """

    def __init__(self, client: Client, recipe_id: str, liked: bool = False, count: int = 0):
        super().__init__()
        self.client = client
        self.recipe_id = recipe_id
        self.state = LikeState(liked=liked, count=count)

    def toggle(self, user_id: Optional[str]) -> LikeState:
        """
        Invierte el like del usuario.

        Raises:
            ToggleBusyError: Si hay otro toggle en curso.
            PermissionError: "Sign in required" si no hay sesión.
            BackendError: Si el backend rechaza el cambio.
        """
        self._acquire()
        snapshot = LikeState(self.state.liked, self.state.count)
        next_liked = not snapshot.liked
        self.state = LikeState(
            liked=next_liked,
            count=max(0, snapshot.count + (1 if next_liked else -1)),
        )
        try:
            if not user_id:
                raise PermissionError("Sign in required")

            likes = self.client.table("recipe_likes")
            if next_liked:
                execute(likes.insert({"user_id": user_id, "recipe_id": self.recipe_id}))
            else:
                execute(
                    likes.delete()
                    .eq("user_id", user_id)
                    .eq("recipe_id", self.recipe_id)
                )
        except Exception:
            self.state = snapshot
            logger.info(f"Like de {self.recipe_id} revertido")
            raise
        finally:
            self._busy.release()
        return self.state


class FollowToggle(_OptimisticToggle):
    """
    Follow/unfollow de un usuario vía `rpc_follow_toggle`.

    Si la RPC devuelve una fila, se confía en el servidor (resuelve carreras
    entre pestañas/dispositivos).
    """

    def __init__(self, client: Client, followee_id: str, following: bool = False, follower_count: int = 0):
        super().__init__()
        self.client = client
        self.followee_id = followee_id
        self.state = FollowState(following=following, follower_count=follower_count)

    def disabled_reason(self, user_id: Optional[str]) -> Optional[str]:
        if not user_id:
            return "Sign in to follow"
        if user_id == self.followee_id:
            return "You can't follow yourself"
        return None

    def toggle(self, user_id: Optional[str]) -> FollowState:
        """
        Invierte el follow.

        Raises:
            ToggleBusyError: Si hay otro toggle en curso.
            PermissionError: Sin sesión, o si se intenta seguirse a uno mismo.
            BackendError: Si la RPC falla.
        """
        self._acquire()
        snapshot = FollowState(self.state.following, self.state.follower_count)
        next_following = not snapshot.following
        self.state = FollowState(
            following=next_following,
            follower_count=max(0, snapshot.follower_count + (1 if next_following else -1)),
        )
        try:
            reason = self.disabled_reason(user_id)
            if reason:
                raise PermissionError("Sign in required" if not user_id else reason)

            rows = execute(self.client.rpc("rpc_follow_toggle", {"p_followee": self.followee_id}))
            if isinstance(rows, list) and rows:
                server = rows[0]
                self.state = FollowState(
                    following=bool(server.get("following")),
                    follower_count=server.get("follower_count") or 0,
                )
        except Exception:
            self.state = snapshot
            logger.info(f"Follow de {self.followee_id} revertido")
            raise
        finally:
            self._busy.release()
        return self.state
