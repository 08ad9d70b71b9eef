# src/taskdesk/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from ..core.state import AppState
from ..tasks.task_models import TaskPriority, TaskStatus
from ..tasks.task_repository import TaskFilter

CommandHandler = Callable[[AppState, list[str]], str]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."
        return handler(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- formatting helpers ----


def _reply(envelope: dict[str, Any], render: Callable[[Any], str] | None = None) -> str:
    if not envelope["success"]:
        errors = envelope.get("errors") or []
        if len(errors) > 1:
            return "Error:\n" + "\n".join(f"  - {e}" for e in errors)
        return f"Error: {envelope['message']}"
    if render is None:
        return envelope["message"]
    return render(envelope["data"])


def _task_line(data: dict[str, Any]) -> str:
    mark = "x" if data["completed"] else " "
    due = f" due {data['due_date']}" if data.get("due_date") else ""
    tags = f" #{' #'.join(data['tags'])}" if data.get("tags") else ""
    return f"[{mark}] {data['id']} {data['title']} ({data['priority']}, {data['status']}){due}{tags}"


def _task_list(data: list[dict[str, Any]]) -> str:
    if not data:
        return "No tasks."
    return "\n".join(_task_line(t) for t in data)


def _task_details(data: dict[str, Any]) -> str:
    lines = [
        _task_line(data),
        f"  category: {data['category']}",
        f"  owner: {data['owner_id']}",
    ]
    if data.get("assignee_id"):
        lines.append(f"  assignee: {data['assignee_id']}")
    if data.get("description"):
        lines.append(f"  {data['description']}")
    for note in data.get("notes") or []:
        lines.append(f"  note ({note['created_at'][:10]}): {note['content']}")
    return "\n".join(lines)


def _require_login(state: AppState) -> str | None:
    if state.current_user_id is None:
        return None
    user = state.user_repository.find_by_id(state.current_user_id)
    if user is None or not user.is_active:
        state.current_user_id = None
        return None
    return user.id


def _resolve_task_id(state: AppState, ref: str) -> str | None:
    """Exact id, or a unique id prefix (ids are long)."""
    if state.task_repository.exists(ref):
        return ref
    hits = [t.id for t in state.task_repository.all() if t.id.startswith(ref)]
    return hits[0] if len(hits) == 1 else None


def _with_task(
    state: AppState,
    args: list[str],
    usage: str,
    action: Callable[[str, str, list[str]], str],
) -> str:
    actor_id = _require_login(state)
    if actor_id is None:
        return "Not logged in. Use /login <username>."
    if not args:
        return f"Usage: {usage}"
    task_id = _resolve_task_id(state, args[0])
    if task_id is None:
        return f"No task matches '{args[0]}'."
    return action(actor_id, task_id, args[1:])


# ---- commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_whoami(state: AppState, args: list[str]) -> str:
    actor_id = _require_login(state)
    if actor_id is None:
        return "Not logged in."
    user = state.user_service.get_user(actor_id)
    return f"{user.username} <{user.email}> ({user.role.value}) id={user.id}"


def cmd_login(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /login <username>"
    env = state.user_controller.login(args[0])
    if env["success"]:
        state.current_user_id = env["data"]["id"]
        return f"Logged in as {env['data']['username']}."
    return _reply(env)


def cmd_users(state: AppState, args: list[str]) -> str:
    include_inactive = bool(args) and args[0].lower() == "all"
    env = state.user_controller.list_users(include_inactive=include_inactive)

    def render(data: list[dict[str, Any]]) -> str:
        if not data:
            return "No users."
        return "\n".join(
            f"{u['username']} <{u['email']}> {u['role']}"
            + ("" if u["is_active"] else " (inactive)")
            for u in data
        )

    return _reply(env, render)


def cmd_adduser(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /adduser <username> <email> [display name]"
    payload: dict[str, Any] = {"username": args[0], "email": args[1]}
    if len(args) > 2:
        payload["display_name"] = " ".join(args[2:])
    env = state.user_controller.register(payload)
    return _reply(env, lambda u: f"User {u['username']} registered (id={u['id']}).")


def cmd_tasks(state: AppState, args: list[str]) -> str:
    """
    /tasks          -> incomplete tasks
    /tasks all      -> everything
    /tasks done     -> completed only
    """
    actor_id = _require_login(state)
    if actor_id is None:
        return "Not logged in. Use /login <username>."

    mode = args[0].lower() if args else "pending"
    if mode not in ("pending", "all", "done"):
        return "Usage: /tasks [all|done]"
    completed = {"pending": False, "done": True}.get(mode)
    task_filter = TaskFilter(completed=completed, sort_by="due_date")
    return _reply(state.task_controller.list_tasks(actor_id, task_filter), _task_list)


def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add Title words !high #tag @2030-01-31

    `!` sets the priority, `#` adds a tag, `@` sets the due date.
    """
    actor_id = _require_login(state)
    if actor_id is None:
        return "Not logged in. Use /login <username>."

    words: list[str] = []
    payload: dict[str, Any] = {}
    tags: list[str] = []
    for token in args:
        if token.startswith("!") and len(token) > 1:
            payload["priority"] = token[1:]
        elif token.startswith("#") and len(token) > 1:
            tags.append(token[1:])
        elif token.startswith("@") and len(token) > 1:
            payload["due_date"] = token[1:]
        else:
            words.append(token)
    if not words:
        return "Usage: /add <title> [!priority] [#tag] [@YYYY-MM-DD]"
    payload["title"] = " ".join(words)
    if tags:
        payload["tags"] = tags

    env = state.task_controller.create(actor_id, payload)
    return _reply(env, lambda t: f"Task created: {_task_line(t)}")


def cmd_show(state: AppState, args: list[str]) -> str:
    return _with_task(
        state,
        args,
        "/show <task id>",
        lambda actor, task_id, _rest: _reply(
            state.task_controller.get(actor, task_id), _task_details
        ),
    )


def cmd_done(state: AppState, args: list[str]) -> str:
    return _with_task(
        state,
        args,
        "/done <task id>",
        lambda actor, task_id, _rest: _reply(
            state.task_controller.set_completed(actor, task_id, True)
        ),
    )


def cmd_undo(state: AppState, args: list[str]) -> str:
    return _with_task(
        state,
        args,
        "/undo <task id>",
        lambda actor, task_id, _rest: _reply(
            state.task_controller.set_completed(actor, task_id, False)
        ),
    )


def _update_one(state: AppState, field: str, usage: str, allowed: list[str] | None = None):
    def action(actor: str, task_id: str, rest: list[str]) -> str:
        if not rest:
            hint = f" ({', '.join(allowed)})" if allowed else ""
            return f"Usage: {usage}{hint}"
        return _reply(state.task_controller.update(actor, task_id, {field: rest[0]}))

    return action


def cmd_status(state: AppState, args: list[str]) -> str:
    usage = "/status <task id> <status>"
    allowed = [s.value for s in TaskStatus]
    return _with_task(state, args, usage, _update_one(state, "status", usage, allowed))


def cmd_priority(state: AppState, args: list[str]) -> str:
    usage = "/priority <task id> <priority>"
    allowed = [p.value for p in TaskPriority]
    return _with_task(state, args, usage, _update_one(state, "priority", usage, allowed))


def cmd_due(state: AppState, args: list[str]) -> str:
    def action(actor: str, task_id: str, rest: list[str]) -> str:
        if not rest:
            return "Usage: /due <task id> <YYYY-MM-DD|none>"
        value = None if rest[0].lower() in ("none", "-", "clear") else rest[0]
        return _reply(state.task_controller.update(actor, task_id, {"due_date": value}))

    return _with_task(state, args, "/due <task id> <YYYY-MM-DD|none>", action)


def cmd_tag(state: AppState, args: list[str]) -> str:
    def action(actor: str, task_id: str, rest: list[str]) -> str:
        task = state.task_service.get_task(task_id)
        tags = list(task.tags) + [t.lstrip("#") for t in rest]
        return _reply(state.task_controller.update(actor, task_id, {"tags": tags}))

    return _with_task(state, args, "/tag <task id> <tag> [tag ...]", action)


def cmd_note(state: AppState, args: list[str]) -> str:
    def action(actor: str, task_id: str, rest: list[str]) -> str:
        if not rest:
            return "Usage: /note <task id> <text>"
        return _reply(state.task_controller.add_note(actor, task_id, " ".join(rest)))

    return _with_task(state, args, "/note <task id> <text>", action)


def cmd_assign(state: AppState, args: list[str]) -> str:
    def action(actor: str, task_id: str, rest: list[str]) -> str:
        if not rest:
            return "Usage: /assign <task id> <username>"
        assignee = state.user_repository.find_by_username(rest[0])
        if assignee is None:
            return f"Unknown user: {rest[0]}"
        return _reply(state.task_controller.assign(actor, task_id, assignee.id))

    return _with_task(state, args, "/assign <task id> <username>", action)


def cmd_delete(state: AppState, args: list[str]) -> str:
    return _with_task(
        state,
        args,
        "/delete <task id>",
        lambda actor, task_id, _rest: _reply(state.task_controller.delete(actor, task_id)),
    )


def cmd_search(state: AppState, args: list[str]) -> str:
    actor_id = _require_login(state)
    if actor_id is None:
        return "Not logged in. Use /login <username>."
    if not args:
        return "Usage: /search <text>"
    return _reply(state.task_controller.search(actor_id, " ".join(args)), _task_list)


def cmd_overdue(state: AppState, args: list[str]) -> str:
    actor_id = _require_login(state)
    if actor_id is None:
        return "Not logged in. Use /login <username>."
    return _reply(state.task_controller.overdue(actor_id), _task_list)


def cmd_stats(state: AppState, args: list[str]) -> str:
    actor_id = _require_login(state)
    if actor_id is None:
        return "Not logged in. Use /login <username>."

    def render(s: dict[str, Any]) -> str:
        by_status = ", ".join(f"{k}={v}" for k, v in s["by_status"].items() if v)
        return (
            "Stats:\n"
            f"  Total: {s['total']} (done {s['completed']}, open {s['incomplete']})\n"
            f"  Overdue: {s['overdue']}, due soon: {s['due_soon']}\n"
            f"  By status: {by_status or '-'}"
        )

    return _reply(state.task_controller.stats(actor_id), render)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("whoami", cmd_whoami, help_text="Show the current user.")
registry.register("login", cmd_login, help_text="Switch user: /login <username>.")
registry.register("users", cmd_users, help_text="List users: /users [all].")
registry.register("adduser", cmd_adduser, help_text="Register: /adduser <username> <email> [name].")
registry.register("tasks", cmd_tasks, help_text="List your tasks: /tasks [all|done].", aliases=["ls"])
registry.register(
    "add", cmd_add, help_text="Create a task: /add <title> [!priority] [#tag] [@YYYY-MM-DD]."
)
registry.register("show", cmd_show, help_text="Show task details: /show <id>.")
registry.register("done", cmd_done, help_text="Mark a task complete: /done <id>.")
registry.register("undo", cmd_undo, help_text="Reopen a task: /undo <id>.")
registry.register("status", cmd_status, help_text="Set status: /status <id> <status>.")
registry.register("priority", cmd_priority, help_text="Set priority: /priority <id> <priority>.")
registry.register("tag", cmd_tag, help_text="Add tags: /tag <id> <tag> [tag ...].")
registry.register("due", cmd_due, help_text="Set or clear due date: /due <id> <YYYY-MM-DD|none>.")
registry.register("note", cmd_note, help_text="Add a note: /note <id> <text>.")
registry.register("assign", cmd_assign, help_text="Assign a task: /assign <id> <username>.")
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <id>.", aliases=["rm"])
registry.register("search", cmd_search, help_text="Search your tasks: /search <text>.")
registry.register("overdue", cmd_overdue, help_text="List overdue tasks.")
registry.register("stats", cmd_stats, help_text="Show task statistics.")
