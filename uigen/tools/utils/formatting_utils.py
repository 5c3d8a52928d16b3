TRUNCATED_MESSAGE: str = (
    "<response clipped><NOTE>To save on context only part of this file has been shown to you. "
    "Use `view` with a `view_range` to see the rest.</NOTE>"
)
MAX_RESPONSE_LEN: int = 16000


def maybe_truncate(content: str, truncate_after: int | None = MAX_RESPONSE_LEN) -> str:
    """Truncate content and append a notice if it exceeds the specified length."""
    if not truncate_after or len(content) <= truncate_after:
        return content
    return content[:truncate_after] + TRUNCATED_MESSAGE


def extract_filename(path: str) -> str:
    parts = path.split("/")
    return parts[-1] or path


def describe_tool_call(tool_name: str, arguments: dict[str, object]) -> str:
    """
    Build a short human readable label for a tool invocation.

    Used to annotate streamed tool events, e.g. "Creating `App.jsx`".
    """
    command = arguments.get("command")
    path = arguments.get("path")
    filename = extract_filename(path) if isinstance(path, str) and path else "file"

    if tool_name == "editor":
        match command:
            case "create":
                return f"Creating `{filename}`"
            case "str_replace":
                return f"Editing `{filename}`"
            case "insert":
                return f"Inserting into `{filename}`"
            case "view":
                return f"Viewing `{filename}`"
            case _:
                return tool_name

    if tool_name == "manager":
        match command:
            case "rename":
                old_path = arguments.get("old_path")
                old_filename = extract_filename(old_path) if isinstance(old_path, str) and old_path else "file"
                return f"Renaming `{old_filename}`"
            case "delete":
                return f"Deleting `{filename}`"
            case _:
                return tool_name

    return tool_name
