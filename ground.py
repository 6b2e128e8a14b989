from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Dict, List

from telegram import Update
from telegram.ext import Application, ContextTypes, MessageHandler, filters

import config
import grammar
import saver
import storage
from pipeline import ChatEvent, Responder, default_greeter, default_responder
from words import PhraseAnalyzer

logging.basicConfig(level=os.environ.get("BABBLE_LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

# Queue a background save after this many handled messages.
SAVE_EVERY = 100


def _name(user) -> str:
    return user.username or user.first_name or str(user.id)


def _read_lines(path: str) -> List[str]:
    p = Path(path)
    if not p.exists():
        return []
    with open(p, "r", encoding="utf-8") as f:
        return [line.strip() for line in f if line.strip()]


def _read_fixed(path: str) -> Dict[str, str]:
    p = Path(path)
    if not p.exists():
        return {}
    with open(p, "r", encoding="utf-8") as f:
        return {str(k): str(v) for k, v in json.load(f).items()}


def _maybe_save(context: ContextTypes.DEFAULT_TYPE) -> None:
    count = context.bot_data.get("handled", 0) + 1
    context.bot_data["handled"] = count
    if count % SAVE_EVERY == 0:
        brain, path = context.bot_data["responder"].holder.snapshot()
        saver.save(brain, path)


async def handle_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Feed incoming text to the responder and send back its reply."""
    try:
        message = update.effective_message
        user = update.effective_user
        chat = update.effective_chat
        text = message.text or ""
        if not text or user is None:
            return

        responder: Responder = context.bot_data["responder"]
        sender = _name(user)
        participants = context.chat_data.setdefault("participants", set())
        participants.add(sender)

        event = ChatEvent(
            bot=context.bot.username or "",
            conversation=str(chat.id),
            sender=sender,
            message=text,
            private=chat.type == "private",
            participants=tuple(participants),
        )
        reply = await asyncio.to_thread(responder.respond, event)
        if reply:
            await message.reply_text(reply)
        _maybe_save(context)
    except Exception:  # pragma: no cover
        logger.exception("error handling message")


async def handle_join(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Greet people joining a group."""
    try:
        message = update.effective_message
        chat = update.effective_chat
        responder: Responder = context.bot_data["responder"]
        for member in message.new_chat_members or []:
            event = ChatEvent(
                bot=context.bot.username or "",
                conversation=chat.title or str(chat.id),
                sender=_name(member),
            )
            greeting = await asyncio.to_thread(responder.greet, event)
            if greeting:
                await message.reply_text(greeting)
    except Exception:  # pragma: no cover
        logger.exception("error greeting")


async def handle_left(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Forget people leaving a group so their names are no longer disguised."""
    member = update.effective_message.left_chat_member
    if member is not None:
        context.chat_data.setdefault("participants", set()).discard(_name(member))


def build_responder(settings: config.Settings) -> Responder:
    """Load the brain and the canned lines named by *settings*."""
    parser = grammar.SpacyParser(settings.spacy_model)
    brain = storage.open_brain(settings.brain_path, PhraseAnalyzer(parser), settings)
    holder = storage.BrainHolder(brain, settings.brain_path)
    responses = default_responder(
        holder, settings, _read_fixed(os.environ.get("BABBLE_FIXED", "fixed.json"))
    )
    greetings = default_greeter(
        settings,
        _read_lines(os.environ.get("BABBLE_JOIN", "join.list")),
        _read_lines(os.environ.get("BABBLE_GREETINGS", "greetings.list")),
    )
    return Responder(holder, settings, responses, greetings)


def main() -> None:
    """Run the Telegram bot."""
    token = os.environ.get("TELEGRAM_TOKEN")
    if not token:
        raise RuntimeError("TELEGRAM_TOKEN not set")

    settings = config.load_settings(os.environ.get("BABBLE_CONFIG"))
    responder = build_responder(settings)

    application = Application.builder().token(token).build()
    application.bot_data["responder"] = responder
    application.add_handler(
        MessageHandler(filters.StatusUpdate.NEW_CHAT_MEMBERS, handle_join)
    )
    application.add_handler(
        MessageHandler(filters.StatusUpdate.LEFT_CHAT_MEMBER, handle_left)
    )
    application.add_handler(
        MessageHandler(filters.TEXT & ~filters.COMMAND, handle_message)
    )

    application.run_polling()

    logger.info("shutting down")
    saver.wait()
    responder.holder.save()


if __name__ == "__main__":  # pragma: no cover - manual run
    main()
