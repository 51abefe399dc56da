"""
Embed creation for automod rule-trigger notifications.
"""

import datetime

import discord

from automod.datatypes.action_datatypes import ActionType
from automod.datatypes.evaluation_datatypes import AuditRecord

ACTION_EMOJIS = {
    ActionType.WARN: "⚠️",
    ActionType.MUTE: "🔇",
    ActionType.KICK: "👢",
    ActionType.BAN: "🔨",
    ActionType.DELETE: "🗑️",
    ActionType.TIMEOUT: "⏱️",
    ActionType.ROLE_ADD: "➕",
    ActionType.ROLE_REMOVE: "➖",
    ActionType.DM_USER: "✉️",
}

# Most severe action wins the embed colour
ACTION_COLORS = {
    ActionType.BAN: discord.Color.dark_red(),
    ActionType.KICK: discord.Color.red(),
    ActionType.MUTE: discord.Color.orange(),
    ActionType.TIMEOUT: discord.Color.orange(),
    ActionType.DELETE: discord.Color.orange(),
    ActionType.WARN: discord.Color.gold(),
    ActionType.ROLE_ADD: discord.Color.blue(),
    ActionType.ROLE_REMOVE: discord.Color.blue(),
    ActionType.DM_USER: discord.Color.light_grey(),
}

MAX_FIELD_LENGTH = 1024


def _action_line(result: dict) -> str:
    try:
        action = ActionType(result.get("action"))
    except ValueError:
        return f"❓ {result.get('action')}"
    emoji = ACTION_EMOJIS.get(action, "⚙️")
    status = "✅" if result.get("success") else "❌"
    line = f"{emoji} {action.value} {status}"
    if result.get("error"):
        line += f" ({result['error']})"
    return line


def embed_color(record: AuditRecord) -> discord.Color:
    performed = {result.get("action") for result in record.action_results}
    for action, color in ACTION_COLORS.items():
        if action.value in performed:
            return color
    return discord.Color.light_grey()


def build_rule_trigger_embed(record: AuditRecord) -> discord.Embed:
    """
    Create an embed summarising a rule firing for the guild's audit channel.

    Args:
        record: The audit record produced after the rule's actions ran.

    Returns:
        discord.Embed: Embed with the rule, the user, the match and each action's outcome.
    """
    embed = discord.Embed(
        title=f"🛡️ AutoMod: {record.rule_name}",
        color=embed_color(record),
        timestamp=datetime.datetime.fromtimestamp(record.timestamp / 1000, tz=datetime.timezone.utc),
    )
    embed.add_field(name="User", value=f"<@{record.user_id}> (`{record.user_id}`)", inline=True)
    embed.add_field(name="Trigger", value=record.trigger_type, inline=True)
    if record.channel_id:
        embed.add_field(name="Channel", value=f"<#{record.channel_id}>", inline=True)

    matched = record.trigger_data.get("matched_pattern") or record.trigger_data.get("matched_keyword")
    reason = record.trigger_data.get("reason")
    if matched:
        embed.add_field(name="Matched", value=f"`{str(matched)[:MAX_FIELD_LENGTH - 2]}`", inline=False)
    elif reason:
        embed.add_field(name="Reason", value=str(reason)[:MAX_FIELD_LENGTH], inline=False)

    lines = [_action_line(result) for result in record.action_results]
    embed.add_field(
        name="Actions",
        value="\n".join(lines)[:MAX_FIELD_LENGTH] if lines else "None",
        inline=False,
    )
    embed.set_footer(text=f"Rule ID: {record.rule_id}")
    return embed
