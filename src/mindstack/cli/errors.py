"""MindStack rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from mindstack.cli.errors import err_no_db
    console.print(err_no_db(".mindstack.db"))
    raise typer.Exit(1)
"""

from __future__ import annotations

_ENV_MAP = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "azure": "AZURE_API_KEY",
}


def err_no_api_key(provider: str) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    env_var = _ENV_MAP.get(provider.lower(), f"{provider.upper()}_API_KEY")
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=sk-..."
    )


def err_no_db(db_path: str = ".mindstack.db") -> str:
    """No database at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  mindstack init"
    )


def err_config(message: str) -> str:
    """Config file could not be loaded."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {message}\n"
        "  Fix mindstack.yaml or ~/.mindstack/config.yaml and retry."
    )


def err_user_not_found(user_id: str) -> str:
    return (
        f"[red]Error:[/] No user with id '{user_id}'.\n"
        "  Run:  mindstack user add <name>   (prints the new user id)"
    )


def err_project_not_found(project_id: str) -> str:
    return (
        f"[red]Error:[/] Project '{project_id}' not found.\n"
        "  Run:  mindstack status   to list projects."
    )


def err_answer_failed(reason: str) -> str:
    """The answer stream ended with an error event."""
    return (
        f"[red]Error:[/] Answer failed: {reason}\n"
        "  Check the log output above, your model API key, and the embedding model in config."
    )
