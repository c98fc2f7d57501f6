"""Registration of terminal commands.

Each sub-command stands in for one screen of the app and only wires user
input to the services on :class:`~golf_buddies.app.GolfBuddiesApp`.
"""

from __future__ import annotations

import argparse
import asyncio
import datetime
import getpass
from collections.abc import Callable
from typing import Any

from ..app import GolfBuddiesApp
from ..core.models import MAX_PLAYERS, PLAYING_STYLES, ChatMessage, Game, Golfer
from ..errors import GolfBuddiesError, ValidationError
from ..games.service import invite_message

Output = Callable[[str], None]


# ----------------------------------------------------------------------
# Formatting
# ----------------------------------------------------------------------
def format_game(game: Game) -> str:
    lines = [
        f"{game.name}  [{game.status}]  {game.current_players}/{game.max_players} players",
        f"  id: {game.id}  code: {game.invite_code}",
    ]
    if game.description:
        lines.append(f"  {game.description}")
    if game.location:
        lines.append(f"  at {game.location}")
    if game.scheduled_date:
        lines.append(f"  on {game.scheduled_date:%Y-%m-%d %H:%M}")
    return "\n".join(lines)


def format_card(g: Golfer) -> str:
    lines = [f"{g.name}, {g.age} - {g.location}", f"  {g.bio}"]
    if g.playing_style:
        lines.append(f"  Style: {g.playing_style}")
    lines.append(f"  Handicap: {g.handicap}  Experience: {g.experience}")
    if g.typical_course:
        lines.append(f"  Typical Course: {g.typical_course}")
    if g.favorite_course:
        lines.append(f"  Favorite Course: {g.favorite_course}")
    return "\n".join(lines)


def format_profile(g: Golfer) -> str:
    lines = [format_card(g)]
    if g.interests:
        lines.append(f"  Interests: {', '.join(g.interests)}")
    return "\n".join(lines)


def format_message(m: ChatMessage) -> str:
    return f"[{m.created_at:%H:%M}] {m.user_name}: {m.message}"


# ----------------------------------------------------------------------
# Handlers
# ----------------------------------------------------------------------
async def cmd_login(app: GolfBuddiesApp, args: argparse.Namespace, out: Output) -> int:
    if args.provider:
        out(f"Open this URL to continue: {app.auth.oauth_url(args.provider)}")
        out("Then run: golf-buddies login --redirect '<the URL you were sent to>'")
        return 0
    if args.redirect:
        session = await app.auth.complete_oauth(args.redirect)
        out(f"Signed in as {session.user.email or session.user.id}")
        return 0
    email = args.email or input("Email: ").strip()
    password = args.password or getpass.getpass("Password: ")
    if args.signup:
        session = await app.auth.sign_up(email, password)
        if session is None:
            out("Check your inbox to confirm your email, then log in.")
            return 0
    else:
        session = await app.auth.sign_in(email, password)
    out(f"Signed in as {session.user.email or session.user.id}")
    return 0


async def cmd_logout(app: GolfBuddiesApp, args: argparse.Namespace, out: Output) -> int:
    await app.auth.sign_out()
    out("Signed out.")
    return 0


async def cmd_profile(app: GolfBuddiesApp, args: argparse.Namespace, out: Output) -> int:
    user = app.auth.require_user()
    profile = await app.profiles.load(user)
    updates: dict[str, Any] = {
        key: getattr(args, key)
        for key in (
            "name",
            "age",
            "bio",
            "handicap",
            "experience",
            "location",
            "typical_course",
            "favorite_course",
            "playing_style",
            "photo",
        )
        if getattr(args, key) is not None
    }
    if updates:
        profile = await app.profiles.save(profile.model_copy(update=updates))
        out("Profile updated successfully!")
    out(format_profile(profile.to_golfer()))
    return 0


async def cmd_discover(app: GolfBuddiesApp, args: argparse.Namespace, out: Output) -> int:
    user = app.auth.require_user()
    candidates = await app.profiles.list_candidates(user)
    controller = app.discovery(candidates)
    controller.on_open_profile = lambda golfer: out(format_profile(golfer))
    prompt = args.input or input

    while not controller.exhausted:
        top = controller.visible_cards()[-1]
        out(format_card(top.golfer))
        choice = prompt("[l]ike  [p]ass  [o]pen  [d <dx>] drag  [q]uit > ").strip().lower()
        if choice in {"q", "quit"}:
            break
        if choice in {"l", "like"}:
            controller.like()
            out("MATCH!")
        elif choice in {"p", "pass"}:
            controller.pass_()
            out("PASS")
        elif choice in {"o", "open"}:
            gesture = controller.top_gesture
            gesture.press()
            controller.release()
        elif choice.startswith("d"):
            try:
                dx = float(choice[1:].strip())
            except ValueError:
                out("Usage: d <pixels>, e.g. d 150 or d -150")
                continue
            gesture = controller.top_gesture
            gesture.press()
            gesture.move(dx, 0.0)
            outcome = controller.release()
            out(outcome.value.upper() if outcome else "")
        else:
            out("Unknown choice")

    summary = controller.empty_state()
    if summary:
        out(summary)
    out(f"Matches: {app.matches.subtitle()}")
    return 0


async def _stay_open(app: GolfBuddiesApp) -> None:
    # keep the token valid while a feed is open
    await app.auth.keep_fresh()
    await asyncio.Event().wait()


async def cmd_games(app: GolfBuddiesApp, args: argparse.Namespace, out: Output) -> int:
    def show(games: list[Game]) -> None:
        if not games:
            out("No open games. Create one with: golf-buddies create <name>")
        for game in games:
            out(format_game(game))

    show(await app.games.list_open_games())
    if not args.watch:
        return 0
    subscription = await app.games.watch_open_games(show)
    try:
        await _stay_open(app)
    except asyncio.CancelledError:
        pass
    finally:
        await subscription.close()
    return 0


async def cmd_create(app: GolfBuddiesApp, args: argparse.Namespace, out: Output) -> int:
    user = app.auth.require_user()
    scheduled = None
    if args.date:
        try:
            scheduled = datetime.datetime.fromisoformat(args.date)
        except ValueError:
            raise ValidationError("Date must look like 2026-05-01T08:30") from None
    game = await app.games.create_game(
        user,
        args.name,
        description=args.description,
        max_players=args.max_players,
        location=args.location,
        scheduled_date=scheduled,
    )
    out(f"Game Created! Your game has been created. Invite code: {game.invite_code}")
    out(invite_message(game))
    return 0


async def cmd_join(app: GolfBuddiesApp, args: argparse.Namespace, out: Output) -> int:
    user = app.auth.require_user()
    await app.games.join_game(user, args.game_id)
    out(format_game(await app.games.get_game(args.game_id)))
    return 0


async def cmd_code(app: GolfBuddiesApp, args: argparse.Namespace, out: Output) -> int:
    user = app.auth.require_user()
    member = await app.games.join_with_code(user, args.code)
    out(format_game(await app.games.get_game(member.game_id)))
    return 0


async def cmd_leave(app: GolfBuddiesApp, args: argparse.Namespace, out: Output) -> int:
    user = app.auth.require_user()
    game = await app.games.get_game(args.game_id)
    if not app.games.can_leave(user, game):
        out("Hosts can't leave their own game.")
        return 1
    await app.games.leave_game(user, args.game_id)
    out(f"You left {game.name}.")
    return 0


class ChatPrinter:
    """Print a chat log as it grows, keeping it in creation order.

    New messages usually land at the end and only those are printed. When
    one sorts before something already shown, the whole log is printed again.
    """

    def __init__(self, out: Output) -> None:
        self.out = out
        self.shown: list[str] = []

    def __call__(self, messages: list[ChatMessage], scroll_to_end: bool = True) -> None:
        ids = [m.id for m in messages]
        if not messages:
            if not self.shown:
                self.out("No messages yet. Start the conversation!")
            return
        if ids[: len(self.shown)] == self.shown:
            fresh = messages[len(self.shown):]
        else:
            self.out("--- earlier messages arrived ---")
            fresh = messages
        for message in fresh:
            self.out(format_message(message))
        self.shown = ids


async def cmd_chat(app: GolfBuddiesApp, args: argparse.Namespace, out: Output) -> int:
    chat = app.chat(args.game_id)
    chat.add_listener(ChatPrinter(out))
    await chat.start()
    try:
        if chat.locked:
            out(chat.placeholder or "")
            return 1
        if args.send:
            await chat.send(args.send)
        if args.follow:
            await _stay_open(app)
    except asyncio.CancelledError:
        pass
    finally:
        await chat.stop()
    return 0


# ----------------------------------------------------------------------
# Parser
# ----------------------------------------------------------------------
def register_commands(parser: argparse.ArgumentParser) -> None:
    """Attach every sub-command and its handler to ``parser``."""
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("login", help="Sign in or create an account")
    p.add_argument("--email")
    p.add_argument("--password")
    p.add_argument("--signup", action="store_true", help="Create a new account")
    p.add_argument("--provider", choices=["google", "apple"])
    p.add_argument("--redirect", help="Redirect URL from a Google/Apple sign in")
    p.set_defaults(handler=cmd_login)

    p = sub.add_parser("logout", help="Sign out")
    p.set_defaults(handler=cmd_logout)

    p = sub.add_parser("profile", help="Show or edit your profile")
    p.add_argument("--name")
    p.add_argument("--age", type=int)
    p.add_argument("--bio")
    p.add_argument("--handicap", type=float)
    p.add_argument("--experience")
    p.add_argument("--location")
    p.add_argument("--typical-course", dest="typical_course")
    p.add_argument("--favorite-course", dest="favorite_course")
    p.add_argument("--playing-style", dest="playing_style", choices=PLAYING_STYLES)
    p.add_argument("--photo")
    p.set_defaults(handler=cmd_profile)

    p = sub.add_parser("discover", help="Swipe through golfers")
    p.set_defaults(handler=cmd_discover, input=None)

    p = sub.add_parser("games", help="List open games")
    p.add_argument("--watch", action="store_true", help="Keep listing as games change")
    p.set_defaults(handler=cmd_games)

    p = sub.add_parser("create", help="Host a new game")
    p.add_argument("name")
    p.add_argument("--description", default="")
    p.add_argument("--max-players", dest="max_players", default=str(MAX_PLAYERS))
    p.add_argument("--location")
    p.add_argument("--date", help="ISO date and time of the round")
    p.set_defaults(handler=cmd_create)

    p = sub.add_parser("join", help="Join a game by id")
    p.add_argument("game_id")
    p.set_defaults(handler=cmd_join)

    p = sub.add_parser("code", help="Join a game with an invite code")
    p.add_argument("code")
    p.set_defaults(handler=cmd_code)

    p = sub.add_parser("leave", help="Leave a game")
    p.add_argument("game_id")
    p.set_defaults(handler=cmd_leave)

    p = sub.add_parser("chat", help="Read and post in a game's chat")
    p.add_argument("game_id")
    p.add_argument("--send")
    p.add_argument("--follow", action="store_true", help="Keep printing new messages")
    p.set_defaults(handler=cmd_chat)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="golf-buddies", description="Find golf buddies and games.")
    register_commands(parser)
    return parser


async def run_command(app: GolfBuddiesApp, args: argparse.Namespace, out: Output = print) -> int:
    """Restore the session, run the chosen handler and report errors."""
    try:
        if args.command != "login":
            await app.auth.restore()
        return await args.handler(app, args, out)
    except GolfBuddiesError as exc:
        out(f"{exc.title}: {exc.message}")
        return 1
