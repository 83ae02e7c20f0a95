"""Bot router composition."""

from __future__ import annotations

from aiogram import Router
from aiogram.filters import Command, CommandStart

from src.bot.handlers import (
    handle_message,
    handle_quota_command,
    handle_rule_command,
    handle_rules_command,
    handle_start_command,
)

router = Router(name="root")
router.message.register(handle_start_command, CommandStart())
router.message.register(handle_start_command, Command("help"))
router.message.register(handle_rule_command, Command("rule"))
router.message.register(handle_rules_command, Command("rules"))
router.message.register(handle_quota_command, Command("quota"))
# Catch-all: every other message is a quick-add sentence.
router.message.register(handle_message)
