from .chat import ChatSynchronizer
from .service import GameService, generate_invite_code, invite_message

__all__ = ["ChatSynchronizer", "GameService", "generate_invite_code", "invite_message"]
