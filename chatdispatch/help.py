"""Help document generation and message splitting."""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from .commands.event import CommandEvent

# Largest message body the chat service accepts
MESSAGE_LIMIT = 2000


def split_message(text: Optional[str], limit: int = MESSAGE_LIMIT) -> List[str]:
    """Split ``text`` into chunks of at most ``limit`` characters.

    Mass mentions are defused. Cuts prefer the last newline, then the
    last space, inside the window, unless that would leave a chunk
    shorter than the final remainder; otherwise the cut is hard.
    """
    chunks: List[str] = []
    if text is None:
        return chunks
    # Cyrillic "е" breaks the mention without changing how it reads
    text = text.replace("@everyone", "@еveryone").replace("@here", "@hеre").strip()
    while len(text) > limit:
        leeway = limit - (len(text) % limit)
        index = text.rfind("\n", 0, limit + 1)
        if index < leeway:
            index = text.rfind(" ", 0, limit + 1)
        if index < leeway or index <= 0:
            index = limit
        chunk = text[:index].strip()
        if chunk:
            chunks.append(chunk)
        text = text[index:].strip()
    if text:
        chunks.append(text)
    return chunks


def build_help(event: "CommandEvent") -> str:
    """Default help document.

    Commands are listed in registry order under category headings.
    Owner-only commands are shown only to the owner and co-owners;
    hidden commands are never shown.
    """
    client = event.client
    privileged = event.is_owner or event.is_co_owner
    lines = [f"**{event.self_user.name}** commands:"]
    category = None
    first = True
    for command in client.commands:
        if command.hidden or (command.owner_only and not privileged):
            continue
        if first or command.category != category:
            category = command.category
            heading = category.name if category is not None else "No Category"
            lines.append(f"\n  __{heading}__:")
            first = False
        arguments = f" {command.arguments}`" if command.arguments else "`"
        lines.append(
            f"`{client.textual_prefix}{command.name}{arguments} - {command.help}"
        )

    owner = client.transport.get_user(client.owner_id)
    if owner is not None:
        contact = f"\nFor additional help, contact **{owner.name}**#{owner.discriminator}"
        if client.server_invite:
            contact += f" or join {client.server_invite}"
        lines.append(contact)
    return "\n".join(lines)
