"""
FocusVoice — Telegram Bot.

Telegram is the front end of the voice command pipeline: users type or
speak "Block social for 30 minutes" / "Remind me to stretch in 20 minutes"
and answer clarifications, confirmations and undo prompts with inline
buttons. All understanding and execution lives in VoiceCommandService;
this module only renders its responses.

Security-first: unauthorized users are silently ignored.
"""

from __future__ import annotations

import logging
import tempfile
from functools import wraps
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Coroutine

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Message, Update
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from focusvoice.config import settings
from focusvoice.core.classifier import is_confirmation
from focusvoice.core.command_service import (
    ClarificationResponse,
    ConfirmationPromptResponse,
    GuidanceResponse,
    ResourcePickerResponse,
    ResponseKind,
    ServiceResponse,
    SuccessResponse,
    VoiceCommandService,
)
from focusvoice.core.voice_session import UtteranceSession
from focusvoice.ports.storage_port import StorageError

if TYPE_CHECKING:
    from focusvoice.data.db import KeyValueDB
    from focusvoice.ports.remote_parser_port import RemoteParserPort

logger = logging.getLogger(__name__)

# user_data keys
PENDING_COMMAND = "pending_command"
PENDING_CLARIFICATION = "pending_clarification"
PENDING_PICKER = "pending_picker"
SUGGESTIONS = "suggestions"
LAST_UNDO = "last_undo"
VOICE_SESSION = "voice_session"
VOICE_UPDATE = "voice_update"


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Decorator that silently ignores messages from unauthorized users.

    Does NOT send any response to strangers — the bot must not reveal
    its existence to unauthorized users.
    """

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        if user is None or user.id not in settings.ALLOWED_USER_IDS:
            uid = user.id if user else "unknown"
            logger.warning("Unauthorized access attempt from user_id=%s", uid)
            return  # Silent ignore
        return await func(update, context)

    return wrapper


# ---------------------------------------------------------------------------
# Per-user service wiring
# ---------------------------------------------------------------------------


def _get_service(update: Update, context: ContextTypes.DEFAULT_TYPE) -> VoiceCommandService:
    """Return (and cache) the VoiceCommandService for this user."""
    from focusvoice.adapters.alias_blocker import AliasBlocker
    from focusvoice.adapters.settings_premium import SettingsPremium
    from focusvoice.adapters.telegram_notifier import TelegramNotifier
    from focusvoice.core.aliases import AliasStore

    services: dict[int, VoiceCommandService] = context.bot_data.setdefault("services", {})
    user_id = update.effective_user.id
    if user_id in services:
        return services[user_id]

    db: KeyValueDB = context.bot_data["db"]
    storage = db.for_user(user_id)
    chat_id = update.effective_chat.id

    service = VoiceCommandService(
        storage=storage,
        blocking=AliasBlocker(AliasStore(storage), storage, context.job_queue, chat_id),
        notifications=TelegramNotifier(context.job_queue, chat_id),
        remote=context.bot_data.get("remote"),
        premium=SettingsPremium(user_id),
    )
    services[user_id] = service
    logger.info("Command service created for user %d", user_id)
    return service


def _clear_pending(context: ContextTypes.DEFAULT_TYPE) -> None:
    for key in (PENDING_COMMAND, PENDING_CLARIFICATION, PENDING_PICKER, SUGGESTIONS):
        context.user_data.pop(key, None)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _suggestion_keyboard(suggestions: list[str], prefix: str = "suggest") -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([
        [InlineKeyboardButton(s, callback_data=f"{prefix}:{i}")]
        for i, s in enumerate(suggestions)
    ])


async def _send_response(
    response: ServiceResponse, message: Message, context: ContextTypes.DEFAULT_TYPE,
) -> None:
    """Render a ServiceResponse and remember whatever the user must answer next."""
    _clear_pending(context)

    if isinstance(response, ConfirmationPromptResponse):
        context.user_data[PENDING_COMMAND] = response.pending
        keyboard = InlineKeyboardMarkup([[
            InlineKeyboardButton("✅ Confirm", callback_data="cmd:confirm"),
            InlineKeyboardButton("✖ Cancel", callback_data="cmd:cancel"),
        ]])
        await message.reply_text(response.message, reply_markup=keyboard)
        return

    if isinstance(response, SuccessResponse):
        markup = None
        if response.undo is not None:
            context.user_data[LAST_UNDO] = response.undo
            markup = InlineKeyboardMarkup([[InlineKeyboardButton("↩ Undo", callback_data="cmd:undo")]])
        await message.reply_text(f"✅ {response.message}", reply_markup=markup)
        return

    if isinstance(response, ClarificationResponse):
        context.user_data[PENDING_CLARIFICATION] = (response.intent, response.missing)
        context.user_data[SUGGESTIONS] = response.suggestions
        await message.reply_text(
            response.message, reply_markup=_suggestion_keyboard(response.suggestions),
        )
        return

    if isinstance(response, GuidanceResponse):
        context.user_data[SUGGESTIONS] = response.suggestions
        await message.reply_text(
            response.message, reply_markup=_suggestion_keyboard(response.suggestions),
        )
        return

    if isinstance(response, ResourcePickerResponse):
        if response.options:
            context.user_data[PENDING_PICKER] = response.intent
            context.user_data[SUGGESTIONS] = response.options
            await message.reply_text(
                response.message, reply_markup=_suggestion_keyboard(response.options, "pick"),
            )
        else:
            await message.reply_text(
                f"You have no saved app groups yet. Add one with "
                f"/addalias {response.target or 'social'} instagram,tiktok"
            )
        return

    prefix = {
        ResponseKind.ERROR: "❌ ",
        ResponseKind.PERMISSION_REQUIRED: "🔕 ",
        ResponseKind.QUOTA_EXHAUSTED: "⚠️ ",
    }.get(response.kind, "")
    if response.message:
        await message.reply_text(prefix + response.message)


def _failure_reporter(message: Message) -> Callable[[ServiceResponse], Coroutine[Any, Any, None]]:
    """Tell the chat when an action fails after its undo window."""

    async def _report(response: ServiceResponse) -> None:
        await message.reply_text(f"❌ {response.message}")

    return _report


# ---------------------------------------------------------------------------
# Text pipeline
# ---------------------------------------------------------------------------


async def _process_text(
    text: str, update: Update, context: ContextTypes.DEFAULT_TYPE, from_voice: bool = False,
) -> None:
    """Route text to a pending question, or through the full pipeline."""
    service = _get_service(update, context)
    message = update.message

    pending = context.user_data.get(PENDING_COMMAND)
    if pending is not None:
        answer = is_confirmation(text)
        if answer is None:
            await message.reply_text("Please confirm or cancel the previous command first.")
            return
        _clear_pending(context)
        if answer:
            response = await service.confirm(pending, on_failure=_failure_reporter(message))
            await _send_response(response, message, context)
        else:
            await message.reply_text("Cancelled.")
        return

    clarification = context.user_data.get(PENDING_CLARIFICATION)
    if clarification is not None:
        intent, missing = clarification
        response = await service.answer_clarification(intent, missing, text)
        await _send_response(response, message, context)
        return

    try:
        response = await service.handle_utterance(text, from_voice=from_voice)
    except StorageError as exc:
        logger.error("Storage error while handling '%s': %s", text[:80], exc)
        await message.reply_text("Sorry, I couldn't reach my storage. Please try again.")
        return
    await _send_response(response, message, context)


# ---------------------------------------------------------------------------
# Callback handlers
# ---------------------------------------------------------------------------


async def _handle_command_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Confirm / cancel / undo buttons."""
    query = update.callback_query
    await query.answer()
    action = query.data.split(":", 1)[1]
    service = _get_service(update, context)

    if action == "confirm":
        pending = context.user_data.get(PENDING_COMMAND)
        if pending is None:
            await query.edit_message_text("Nothing to confirm.")
            return
        _clear_pending(context)
        await query.edit_message_reply_markup(reply_markup=None)
        response = await service.confirm(pending, on_failure=_failure_reporter(query.message))
        await _send_response(response, query.message, context)

    elif action == "cancel":
        _clear_pending(context)
        await query.edit_message_text("Cancelled.")

    elif action == "undo":
        record = context.user_data.pop(LAST_UNDO, None)
        if record is None:
            await query.edit_message_text("Nothing to undo.")
            return
        if await service.undo(record):
            await query.edit_message_text("↩ Undone.")
        else:
            await query.edit_message_text("Sorry, I couldn't undo that.")


async def _handle_suggestion_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """A suggestion button answers the open clarification or starts a new command."""
    query = update.callback_query
    await query.answer()
    suggestions = context.user_data.get(SUGGESTIONS) or []
    index = int(query.data.split(":", 1)[1])
    if index >= len(suggestions):
        await query.edit_message_text("That option expired. Please try again.")
        return
    text = suggestions[index]
    await query.edit_message_reply_markup(reply_markup=None)

    service = _get_service(update, context)
    clarification = context.user_data.get(PENDING_CLARIFICATION)
    if clarification is not None:
        intent, missing = clarification
        response = await service.answer_clarification(intent, missing, text)
    elif text.lower() == "cancel":
        _clear_pending(context)
        await query.message.reply_text("Cancelled.")
        return
    else:
        response = await service.handle_utterance(text)
    await _send_response(response, query.message, context)


async def _handle_picker_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Resource picker: retry the block with the chosen saved group."""
    query = update.callback_query
    await query.answer()
    intent = context.user_data.get(PENDING_PICKER)
    options = context.user_data.get(SUGGESTIONS) or []
    index = int(query.data.split(":", 1)[1])
    if intent is None or index >= len(options):
        await query.edit_message_text("That option expired. Please try again.")
        return
    await query.edit_message_reply_markup(reply_markup=None)

    service = _get_service(update, context)
    chosen = intent.model_copy(update={"target": options[index]})
    await _send_response(await service.handle_intent(chosen), query.message, context)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start — welcome message."""
    await update.message.reply_text(
        "Welcome to *FocusVoice*!\n\n"
        "Send me a text or voice message like:\n"
        "• _Block social for 30 minutes_\n"
        "• _Remind me to drink water in 10 minutes_\n"
        "• _Stop_\n\n"
        "Save app groups first with /addalias, then type /help for everything else.",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help — list available commands."""
    await update.message.reply_text(
        "*Available commands:*\n"
        "/addalias <name> <app1,app2> — Save a group of apps to block\n"
        "/removealias <name> — Delete a saved group\n"
        "/aliases — List saved groups\n"
        "/reminders — List active reminders\n"
        "/stop — Stop the current blocking session\n"
        "/usage — Smart parsing calls left today\n"
        "/help — Show this message",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_stop(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /stop — same as saying "stop"."""
    _clear_pending(context)
    await _process_text("stop", update, context)


@authorized_only
async def cmd_usage(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    service = _get_service(update, context)
    stats = await service.usage_stats()
    if stats["is_premium"]:
        await update.message.reply_text("⭐ Premium: unlimited smart parsing.")
        return
    await update.message.reply_text(
        f"Smart parsing today: {stats['used']}/{stats['limit']} used, "
        f"{stats['remaining']} left."
    )


@authorized_only
async def cmd_aliases(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    service = _get_service(update, context)
    aliases = await service.aliases.list_aliases()
    if not aliases:
        await update.message.reply_text("No saved groups. Add one with /addalias social instagram,tiktok")
        return
    lines = ["*Saved groups:*"]
    for alias in aliases:
        apps = ", ".join(alias.tokens.get("apps", [])) or "—"
        lines.append(f"• *{alias.nickname}*: {apps}")
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


@authorized_only
async def cmd_addalias(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /addalias <name> <app1,app2,...>."""
    args = context.args or []
    if len(args) < 2:
        await update.message.reply_text("Usage: /addalias <name> <app1,app2,...>")
        return
    nickname = args[0]
    apps = [a.strip().lower() for a in " ".join(args[1:]).split(",") if a.strip()]
    service = _get_service(update, context)
    alias = await service.aliases.upsert_alias(nickname, {"apps": apps})
    await update.message.reply_text(f"Saved *{alias.nickname}*: {', '.join(apps)}", parse_mode="Markdown")


@authorized_only
async def cmd_removealias(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    args = context.args or []
    if not args:
        await update.message.reply_text("Usage: /removealias <name>")
        return
    service = _get_service(update, context)
    if await service.aliases.remove_alias(args[0]):
        await update.message.reply_text(f"Removed {args[0].lower()}.")
    else:
        await update.message.reply_text(f"No saved group called {args[0].lower()}.")


@authorized_only
async def cmd_reminders(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    service = _get_service(update, context)
    reminders = await service.reminders.list_reminders()
    if not reminders:
        await update.message.reply_text("No active reminders.")
        return
    lines = ["*Active reminders:*"]
    for r in reminders:
        when = r.time or f"in {r.duration_minutes} min"
        days = f" ({', '.join(d.capitalize() for d in r.days)})" if r.days else ""
        lines.append(f"• {r.message} — {r.reminder_type} {when}{days}")
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


# ---------------------------------------------------------------------------
# Message handlers
# ---------------------------------------------------------------------------


@authorized_only
async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle plain text messages — typed commands and answers."""
    await _process_text(update.message.text, update, context)


async def _voice_session(update: Update, context: ContextTypes.DEFAULT_TYPE) -> UtteranceSession:
    """Return the user's open utterance session, starting a new one if needed.

    Transcripts that arrive inside one session are debounced, and a
    repeat of text already handled in it is dropped.
    """
    session = context.user_data.get(VOICE_SESSION)
    if session is not None and session.active:
        return session

    async def _on_utterance(text: str) -> None:
        latest = context.user_data.get(VOICE_UPDATE, update)
        try:
            await _process_text(text, latest, context, from_voice=True)
        except Exception as exc:
            logger.error("Voice command failed for '%s': %s", text[:80], exc)
            await latest.message.reply_text(
                "Sorry, I couldn't process your voice message. Please try again or type it."
            )

    session = UtteranceSession(_on_utterance, listen_timeout=settings.VOICE_SESSION_SECONDS)
    await session.start()
    context.user_data[VOICE_SESSION] = session
    return session


@authorized_only
async def handle_voice(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle voice messages — transcribe via Whisper, then feed the transcript
    to the utterance session, which runs the pipeline once it settles."""
    from focusvoice.core.transcriber import transcribe_audio

    voice = update.message.voice
    tmp_path: str | None = None

    try:
        voice_file = await context.bot.get_file(voice.file_id)
        with tempfile.NamedTemporaryFile(suffix=".ogg", delete=False) as tmp:
            tmp_path = tmp.name
        await voice_file.download_to_drive(tmp_path)

        text = await transcribe_audio(tmp_path)
        logger.info("Voice transcribed: %s", text[:80])

        await update.message.reply_text(f"🎤 I heard: {text}")
        context.user_data[VOICE_UPDATE] = update
        session = await _voice_session(update, context)
        await session.on_result(text, True)

    except Exception as exc:
        logger.error("Voice handling error: %s", exc)
        await update.message.reply_text(
            "Sorry, I couldn't process your voice message. Please try again or type it."
        )
    finally:
        if tmp_path:
            try:
                Path(tmp_path).unlink(missing_ok=True)
            except OSError:
                logger.debug("Could not delete temp file %s", tmp_path)


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


def build_app(
    db: KeyValueDB | None = None,
    remote: RemoteParserPort | None = None,
) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        db: Key-value database. Defaults to KeyValueDB at DATABASE_PATH.
        remote: Remote intent parser. Defaults to LLMRemoteParser.
    """
    app = ApplicationBuilder().token(settings.TELEGRAM_BOT_TOKEN).build()

    if db is None:
        from focusvoice.data.db import KeyValueDB
        db = KeyValueDB()

    if remote is None:
        from focusvoice.core.remote_parser import LLMRemoteParser
        remote = LLMRemoteParser()

    app.bot_data["db"] = db
    app.bot_data["remote"] = remote
    app.bot_data["services"] = {}

    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("stop", cmd_stop))
    app.add_handler(CommandHandler("usage", cmd_usage))
    app.add_handler(CommandHandler("aliases", cmd_aliases))
    app.add_handler(CommandHandler("addalias", cmd_addalias))
    app.add_handler(CommandHandler("removealias", cmd_removealias))
    app.add_handler(CommandHandler("reminders", cmd_reminders))
    app.add_handler(CallbackQueryHandler(authorized_only(_handle_command_callback), pattern=r"^cmd:"))
    app.add_handler(CallbackQueryHandler(authorized_only(_handle_suggestion_callback), pattern=r"^suggest:\d+$"))
    app.add_handler(CallbackQueryHandler(authorized_only(_handle_picker_callback), pattern=r"^pick:\d+$"))

    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text))
    app.add_handler(MessageHandler(filters.VOICE, handle_voice))

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


def main() -> None:
    """Entry point: build the app and start polling."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting FocusVoice bot...")
    app = build_app()
    app.run_polling()


if __name__ == "__main__":
    main()
