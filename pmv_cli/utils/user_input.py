"""
Interactive prompts. Terminal reads block, so each prompt runs on a worker
thread while the calling task waits for the answer.
"""

import asyncio

import typer


def _prompt_line(prompt: str, hide_input: bool) -> str:
    return typer.prompt(
        prompt,
        default="",
        show_default=False,
        hide_input=hide_input,
        err=True,
    )


async def ask_user(prompt: str) -> str:
    """Reads one line from the terminal. An empty answer is returned as-is."""
    return await asyncio.to_thread(_prompt_line, prompt, False)


async def ask_user_password(prompt: str) -> str:
    """Reads a secret from the terminal without echoing it."""
    return await asyncio.to_thread(_prompt_line, prompt, True)


async def ask_confirmation(prompt: str) -> bool:
    answer = await ask_user(f"{prompt} y/n")
    return answer.strip().lower() == "y"
