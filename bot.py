import asyncio
import functools
import logging
import os
from typing import Any, Dict, List, Optional, Tuple

from dotenv import load_dotenv

# Загружаем переменные окружения
load_dotenv()

from telegram import (
    Update,
    InlineKeyboardMarkup,
    InlineKeyboardButton,
    Message,
)
from telegram.constants import ParseMode
from telegram.error import TelegramError
from telegram.ext import (
    ApplicationBuilder,
    ContextTypes,
    CommandHandler,
    ConversationHandler,
    MessageHandler,
    CallbackQueryHandler,
    filters,
)

import admin_actions
from github_store import BatchResult, ContentStoreClient, PartialTreeDeleteError, StoreError
from records import ACHIEVEMENT_CATEGORIES, NOTICE_CATEGORIES, check_name
from settings import load_location, save_location, strict_lookups

# ——————————————————————————————————————————————
#                  ЛОГИРОВАНИЕ
# ——————————————————————————————————————————————
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
)
log = logging.getLogger("school-admin-bot")

# ——————————————————————————————————————————————
#                  КОНСТАНТЫ
# ——————————————————————————————————————————————
TOKEN = os.getenv("BOT_TOKEN")
WEBHOOK_URL = os.getenv("WEBHOOK_URL", "").strip()

PORT_STR = os.getenv("PORT", "10000")
try:
    PORT = int(PORT_STR)
except (ValueError, TypeError):
    PORT = 10000
    log.warning(f"⚠️  Не удалось преобразовать PORT '{PORT_STR}' в int, используем {PORT}")


def _parse_admin_ids(raw: str) -> set:
    ids = set()
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            ids.add(int(part))
        except ValueError:
            log.warning(f"⚠️  Некорректный id в ADMIN_IDS: {part!r}")
    return ids


ADMIN_IDS = _parse_admin_ids(os.getenv("ADMIN_IDS", ""))

(
    ACH_FOLDER,
    ACH_TITLE,
    ACH_CATEGORY,
    ACH_DATE,
    ACH_DESCRIPTION,
    ACH_IMAGE,
) = range(6)
UP_FOLDER, UP_TITLE, UP_DATE, UP_DESCRIPTION, UP_FILES = range(10, 15)
GAL_FOLDER, GAL_IMAGES = range(20, 22)
NOTICE_TITLE, NOTICE_DATE, NOTICE_CATEGORY, NOTICE_PINNED, NOTICE_CONTENT = range(30, 35)

TEXT = filters.TEXT & ~filters.COMMAND
FILES = filters.Document.ALL | filters.PHOTO


# ——————————————————————————————————————————————
#           ВСПОМОГАТЕЛЬНЫЕ ФУНКЦИИ
# ——————————————————————————————————————————————
async def _reply(update: Update, text: str, **kw):
    """Универсальный ответ (поддерживает callback и обычное сообщение)."""
    if update.callback_query:
        await update.callback_query.message.reply_text(text, **kw)
    elif update.message:
        await update.message.reply_text(text, **kw)


def _get_user_id(update: Update) -> int:
    if update.effective_user:
        return update.effective_user.id
    return 0


def _is_admin(update: Update) -> bool:
    if not ADMIN_IDS:
        return True
    return _get_user_id(update) in ADMIN_IDS


def admin_only(handler):
    """Пускает только пользователей из ADMIN_IDS."""

    @functools.wraps(handler)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not _is_admin(update):
            log.warning(f"⛔ Доступ запрещён для {_get_user_id(update)}")
            if update.callback_query:
                await update.callback_query.answer("Not allowed", show_alert=True)
            else:
                await _reply(update, "⛔ You are not allowed to use this console.")
            return ConversationHandler.END
        return await handler(update, context)

    return wrapper


def _client() -> ContentStoreClient:
    # Снимок настроек на момент начала операции
    return ContentStoreClient(load_location(), strict=strict_lookups())


async def _run(func, *args, **kw):
    """Блокирующие запросы к GitHub уводим из event loop."""
    return await asyncio.to_thread(func, *args, **kw)


def _form(context: ContextTypes.DEFAULT_TYPE) -> Dict[str, Any]:
    return context.user_data.setdefault("form", {})


def _reset_form(context: ContextTypes.DEFAULT_TYPE) -> None:
    context.user_data.pop("form", None)


def _buttons(prefix: str, values) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [[InlineKeyboardButton(v, callback_data=f"{prefix}|{v}")] for v in values]
    )


def _batch_banner(result: BatchResult, what: str) -> str:
    if result.clean:
        return f"✅ {what} completed successfully! ({len(result.items)} file(s))"
    lines = [f"⚠️ {what} finished with errors. {result.summary()}"]
    for item in result.failed:
        lines.append(f"❌ {item.path}: {item.error}")
    if result.skipped:
        lines.append(f"⏭ {len(result.skipped)} file(s) were not attempted.")
    return "\n".join(lines)


async def _download(message: Message) -> Optional[Tuple[str, bytes]]:
    """Скачивает документ или фото из сообщения. Возвращает (имя, байты)."""
    if message.document:
        tg_file = await message.document.get_file()
        name = message.document.file_name or f"file_{message.document.file_unique_id}"
    elif message.photo:
        biggest = message.photo[-1]
        tg_file = await biggest.get_file()
        name = f"photo_{biggest.file_unique_id}.jpg"
    else:
        return None
    data = await tg_file.download_as_bytearray()
    return name, bytes(data)


async def _ask_folder_name(update: Update) -> Optional[str]:
    text = (update.message.text or "").strip()
    try:
        return check_name(text)
    except ValueError as e:
        await update.message.reply_text(f"⚠️ {e}. Try another folder name:")
        return None


async def _ask_date(update: Update) -> Optional[str]:
    """None — дата некорректна, пользователю уже ответили."""
    text = "" if update.message.text.startswith("/skip") else update.message.text
    try:
        return admin_actions.normalize_date(text)
    except ValueError as e:
        await update.message.reply_text(f"⚠️ {e}. Send the date again or /skip for today:")
        return None


# ——————————————————————————————————————————————
#                  ОБЩИЕ КОМАНДЫ
# ——————————————————————————————————————————————
@admin_only
async def start(update: Update, context: ContextTypes.DEFAULT_TYPE):
    log.info(f"📥 /start от {_get_user_id(update)}")
    loc = load_location()
    status = f"📦 Repository: {loc.owner}/{loc.repo}" if loc else "⚠️ GitHub is not configured yet, use /config"
    await _reply(
        update,
        "👋 School content admin.\n\n"
        f"{status}\n\n"
        "Type /help to see the available commands.",
    )


@admin_only
async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    await _reply(
        update,
        "📖 Commands:\n\n"
        "🏆 /achievement - add an achievement (data.txt + optional image)\n"
        "📁 /upload - create an upload folder with files\n"
        "🖼 /gallery - create a gallery from photos\n"
        "📢 /notice - publish a notice\n"
        "📋 /notices - list and delete notices\n"
        "🗂 /folders - list and delete folders\n"
        "⚙️ /config <token> <owner> <repo> - GitHub settings\n"
        "ℹ️ /status - show current settings\n"
        "❌ /cancel - abort the current form",
    )


@admin_only
async def config_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    args = context.args or []
    if len(args) != 3:
        await _reply(update, "Usage: /config <token> <owner> <repo>")
        return
    token, owner, repo = args
    try:
        await _run(save_location, token, owner, repo)
    except (OSError, ValueError) as e:
        log.error(f"❌ Ошибка сохранения настроек: {e}")
        await _reply(update, f"❌ Could not save settings: {e}")
        return
    # Сообщение с токеном не оставляем в чате
    try:
        await update.message.delete()
    except TelegramError as e:
        log.warning(f"⚠️  Не удалось удалить сообщение с токеном: {e}")
    await update.effective_chat.send_message(f"✅ GitHub settings saved: {owner}/{repo}")


@admin_only
async def status_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    loc = load_location()
    if not loc:
        await _reply(update, "⚠️ GitHub is not configured. Use /config <token> <owner> <repo>")
        return
    branch = loc.branch or "default branch"
    await _reply(update, f"📦 {loc.owner}/{loc.repo} ({branch})\n🔑 token: set")


async def cancel(update: Update, context: ContextTypes.DEFAULT_TYPE):
    _reset_form(context)
    await _reply(update, "❌ Cancelled.")
    return ConversationHandler.END


# ——————————————————————————————————————————————
#                  ДОСТИЖЕНИЯ
# ——————————————————————————————————————————————
@admin_only
async def achievement_start(update: Update, context: ContextTypes.DEFAULT_TYPE):
    _reset_form(context)
    await _reply(update, "🏆 New achievement.\nFolder name (e.g. spring-fair):")
    return ACH_FOLDER


async def achievement_folder(update: Update, context: ContextTypes.DEFAULT_TYPE):
    folder = await _ask_folder_name(update)
    if folder is None:
        return ACH_FOLDER
    _form(context)["folder"] = folder
    await update.message.reply_text("Title:")
    return ACH_TITLE


async def achievement_title(update: Update, context: ContextTypes.DEFAULT_TYPE):
    _form(context)["title"] = update.message.text.strip()
    await update.message.reply_text("Category:", reply_markup=_buttons("cat", ACHIEVEMENT_CATEGORIES))
    return ACH_CATEGORY


async def achievement_category(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    _, category = query.data.split("|", 1)
    _form(context)["category"] = category
    await query.edit_message_text(f"Category: {category}")
    await query.message.reply_text("Date (YYYY-MM-DD) or /skip for today:")
    return ACH_DATE


async def achievement_date(update: Update, context: ContextTypes.DEFAULT_TYPE):
    value = await _ask_date(update)
    if value is None:
        return ACH_DATE
    _form(context)["date"] = value
    await update.message.reply_text("Description:")
    return ACH_DESCRIPTION


async def achievement_description(update: Update, context: ContextTypes.DEFAULT_TYPE):
    _form(context)["description"] = update.message.text.strip()
    await update.message.reply_text("Send an image (photo or file) or /skip:")
    return ACH_IMAGE


async def achievement_image(update: Update, context: ContextTypes.DEFAULT_TYPE):
    form = _form(context)
    image = None
    if not (update.message.text or "").startswith("/skip"):
        downloaded = await _download(update.message)
        if downloaded is None:
            await update.message.reply_text("⚠️ Send a photo or a file, or /skip.")
            return ACH_IMAGE
        image = downloaded[1]

    await update.message.reply_text("⏳ Saving achievement...")
    try:
        written = await _run(
            admin_actions.submit_achievement,
            _client(),
            form["folder"],
            form["title"],
            form["category"],
            form["date"],
            form["description"],
            image,
        )
    except (StoreError, ValueError) as e:
        log.error(f"❌ Достижение {form.get('folder')}: {e}")
        await update.message.reply_text(f"❌ {e}")
    else:
        await update.message.reply_text(
            f"✅ Achievement created successfully! ({', '.join(written)})"
        )
    _reset_form(context)
    return ConversationHandler.END


# ——————————————————————————————————————————————
#                  ЗАГРУЗКИ
# ——————————————————————————————————————————————
@admin_only
async def upload_start(update: Update, context: ContextTypes.DEFAULT_TYPE):
    _reset_form(context)
    await _reply(update, "📁 New upload folder.\nFolder name:")
    return UP_FOLDER


async def upload_folder(update: Update, context: ContextTypes.DEFAULT_TYPE):
    folder = await _ask_folder_name(update)
    if folder is None:
        return UP_FOLDER
    _form(context)["folder"] = folder
    await update.message.reply_text("Title:")
    return UP_TITLE


async def upload_title(update: Update, context: ContextTypes.DEFAULT_TYPE):
    _form(context)["title"] = update.message.text.strip()
    await update.message.reply_text("Date (YYYY-MM-DD) or /skip for today:")
    return UP_DATE


async def upload_date(update: Update, context: ContextTypes.DEFAULT_TYPE):
    value = await _ask_date(update)
    if value is None:
        return UP_DATE
    _form(context)["date"] = value
    await update.message.reply_text("Description or /skip:")
    return UP_DESCRIPTION


async def upload_description(update: Update, context: ContextTypes.DEFAULT_TYPE):
    text = update.message.text
    _form(context)["description"] = "" if text.startswith("/skip") else text.strip()
    _form(context)["files"] = []
    await update.message.reply_text("Send the files, then /done:")
    return UP_FILES


async def collect_file(update: Update, context: ContextTypes.DEFAULT_TYPE):
    downloaded = await _download(update.message)
    if downloaded is None:
        await update.message.reply_text("⚠️ Send a photo or a file.")
        return None
    files: List[Tuple[str, bytes]] = _form(context).setdefault("files", [])
    files.append(downloaded)
    await update.message.reply_text(f"📎 {downloaded[0]} added ({len(files)}). More, or /done.")
    return None


async def upload_done(update: Update, context: ContextTypes.DEFAULT_TYPE):
    form = _form(context)
    if not form.get("files"):
        await update.message.reply_text("⚠️ Send at least one file first.")
        return UP_FILES
    await update.message.reply_text("⏳ Uploading...")
    try:
        result = await _run(
            admin_actions.submit_upload,
            _client(),
            form["folder"],
            form["title"],
            form["date"],
            form.get("description", ""),
            form.get("files", []),
        )
    except (StoreError, ValueError) as e:
        log.error(f"❌ Загрузка {form.get('folder')}: {e}")
        await update.message.reply_text(f"❌ {e}")
    else:
        await update.message.reply_text(_batch_banner(result, "Upload"))
    _reset_form(context)
    return ConversationHandler.END


# ——————————————————————————————————————————————
#                  ГАЛЕРЕЯ
# ——————————————————————————————————————————————
@admin_only
async def gallery_start(update: Update, context: ContextTypes.DEFAULT_TYPE):
    _reset_form(context)
    await _reply(update, "🖼 New gallery.\nFolder name:")
    return GAL_FOLDER


async def gallery_folder(update: Update, context: ContextTypes.DEFAULT_TYPE):
    folder = await _ask_folder_name(update)
    if folder is None:
        return GAL_FOLDER
    _form(context).update({"folder": folder, "files": []})
    await update.message.reply_text("Send the photos, then /done:")
    return GAL_IMAGES


async def gallery_done(update: Update, context: ContextTypes.DEFAULT_TYPE):
    form = _form(context)
    if not form.get("files"):
        await update.message.reply_text("⚠️ Send at least one photo first.")
        return GAL_IMAGES
    await update.message.reply_text("⏳ Uploading gallery...")
    try:
        result = await _run(admin_actions.submit_gallery, _client(), form["folder"], form["files"])
    except (StoreError, ValueError) as e:
        log.error(f"❌ Галерея {form.get('folder')}: {e}")
        await update.message.reply_text(f"❌ {e}")
    else:
        await update.message.reply_text(_batch_banner(result, "Gallery"))
    _reset_form(context)
    return ConversationHandler.END


# ——————————————————————————————————————————————
#                  ОБЪЯВЛЕНИЯ
# ——————————————————————————————————————————————
@admin_only
async def notice_start(update: Update, context: ContextTypes.DEFAULT_TYPE):
    _reset_form(context)
    await _reply(update, "📢 New notice.\nTitle:")
    return NOTICE_TITLE


async def notice_title(update: Update, context: ContextTypes.DEFAULT_TYPE):
    _form(context)["title"] = update.message.text.strip()
    await update.message.reply_text("Date (YYYY-MM-DD) or /skip for today:")
    return NOTICE_DATE


async def notice_date(update: Update, context: ContextTypes.DEFAULT_TYPE):
    value = await _ask_date(update)
    if value is None:
        return NOTICE_DATE
    _form(context)["date"] = value
    await update.message.reply_text("Category:", reply_markup=_buttons("ncat", NOTICE_CATEGORIES))
    return NOTICE_CATEGORY


async def notice_category(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    _, category = query.data.split("|", 1)
    _form(context)["category"] = category
    await query.edit_message_text(f"Category: {category}")
    kb = InlineKeyboardMarkup([
        [InlineKeyboardButton("📌 Pinned", callback_data="pin|true")],
        [InlineKeyboardButton("Not pinned", callback_data="pin|false")],
    ])
    await query.message.reply_text("Pin this notice?", reply_markup=kb)
    return NOTICE_PINNED


async def notice_pinned(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    pinned = query.data == "pin|true"
    _form(context)["pinned"] = pinned
    await query.edit_message_text("📌 Pinned" if pinned else "Not pinned")
    await query.message.reply_text("Notice text:")
    return NOTICE_CONTENT


async def notice_content(update: Update, context: ContextTypes.DEFAULT_TYPE):
    form = _form(context)
    await update.message.reply_text("⏳ Publishing notice...")
    try:
        notice = await _run(
            admin_actions.submit_notice,
            _client(),
            form["title"],
            form["date"],
            form["category"],
            form["pinned"],
            update.message.text,
        )
    except (StoreError, ValueError) as e:
        log.error(f"❌ Объявление: {e}")
        await update.message.reply_text(f"❌ {e}")
    else:
        await update.message.reply_text(
            f"✅ Notice created successfully!\nID: `{notice.notice_id}`",
            parse_mode=ParseMode.MARKDOWN,
        )
    _reset_form(context)
    return ConversationHandler.END


@admin_only
async def notices_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    try:
        notices = await _run(_client().list_notices)
    except StoreError as e:
        await _reply(update, f"❌ {e}")
        return
    if not notices:
        await _reply(update, "No notices found")
        return
    for n in notices:
        pin = "📌 " if n.pinned else ""
        kb = InlineKeyboardMarkup(
            [[InlineKeyboardButton("🗑 Delete", callback_data=f"ndel|{n.notice_id}")]]
        )
        await _reply(update, f"{pin}{n.title}\n📅 {n.date} · {n.category}", reply_markup=kb)


@admin_only
async def on_notice_delete(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    action, notice_id = query.data.split("|", 1)
    if action == "ndel":
        kb = InlineKeyboardMarkup([[
            InlineKeyboardButton("Yes, delete", callback_data=f"ndelok|{notice_id}"),
            InlineKeyboardButton("No", callback_data="nop|"),
        ]])
        await query.edit_message_reply_markup(reply_markup=kb)
        return

    client = _client()
    try:
        # sha берём свежий, список мог устареть
        notice = await _run(admin_actions.find_notice, client, notice_id)
        if notice is None:
            await query.edit_message_text("⚠️ Notice not found, it may already be deleted.")
            return
        await _run(admin_actions.delete_notice, client, notice)
    except StoreError as e:
        log.error(f"❌ Удаление объявления {notice_id}: {e}")
        await query.edit_message_text(f"❌ {e}")
        return
    await query.edit_message_text(f'✅ Notice "{notice.title}" deleted successfully!')


# ——————————————————————————————————————————————
#                  ПАПКИ
# ——————————————————————————————————————————————
@admin_only
async def folders_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    try:
        folders = await _run(admin_actions.list_managed_folders, _client())
    except StoreError as e:
        await _reply(update, f"❌ {e}")
        return
    # callback_data ограничен 64 байтами, поэтому передаём индекс
    index: List[Tuple[str, str]] = []
    rows = []
    for main, entries in folders.items():
        for e in entries:
            rows.append([InlineKeyboardButton(f"🗑 {main}/{e.name}", callback_data=f"fdel|{len(index)}")])
            index.append((main, e.name))
    context.user_data["folders"] = index
    if not rows:
        await _reply(update, "No subfolders found")
        return
    await _reply(
        update,
        "🗂 Subfolders (the main folders themselves cannot be deleted):",
        reply_markup=InlineKeyboardMarkup(rows),
    )


@admin_only
async def on_folder_delete(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    action, raw_idx = query.data.split("|", 1)
    index = context.user_data.get("folders", [])
    try:
        main, name = index[int(raw_idx)]
    except (ValueError, IndexError):
        await query.edit_message_text("⚠️ Folder list expired. Run /folders again.")
        return

    if action == "fdel":
        kb = InlineKeyboardMarkup([[
            InlineKeyboardButton("Yes, delete", callback_data=f"fdelok|{raw_idx}"),
            InlineKeyboardButton("No", callback_data="nop|"),
        ]])
        await query.edit_message_text(
            f'Delete the folder "{main}/{name}"? This action cannot be undone.', reply_markup=kb
        )
        return

    await query.edit_message_text(f"⏳ Deleting {main}/{name}...")
    try:
        deleted = await _run(admin_actions.delete_managed_folder, _client(), main, name)
    except PartialTreeDeleteError as e:
        log.error(f"❌ Частичное удаление {e.path}: {e.cause}")
        await query.edit_message_text(
            f"⚠️ Folder {main}/{name} was only partially deleted "
            f"({len(e.deleted)} file(s) removed): {e.cause}\nRun /folders to check what remains."
        )
        return
    except (StoreError, ValueError) as e:
        log.error(f"❌ Удаление {main}/{name}: {e}")
        await query.edit_message_text(f"❌ {e}")
        return
    await query.edit_message_text(
        f'✅ Folder "{name}" deleted successfully! ({len(deleted)} file(s))'
    )


async def on_nop(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    await query.edit_message_text("Cancelled.")


async def on_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Обработчик ошибок"""
    log.error(f"❌ Ошибка обработчика: {context.error}", exc_info=context.error)
    if isinstance(update, Update):
        try:
            await _reply(update, "❌ Unexpected error, the operation was aborted.")
        except TelegramError as e:
            log.error(f"❌ Не удалось сообщить об ошибке: {e}")


# ——————————————————————————————————————————————
#             СБРОС WEBHOOK ПЕРЕД POLLING
# ——————————————————————————————————————————————
async def delete_webhook_on_startup(app):
    await app.bot.delete_webhook(drop_pending_updates=True)
    log.info("🔄 Webhook удалён, очередь сброшена.")


def build_application():
    builder = ApplicationBuilder().token(TOKEN)
    if not WEBHOOK_URL:
        builder = builder.post_init(delete_webhook_on_startup)
    app = builder.build()

    cancel_handler = CommandHandler("cancel", cancel)

    app.add_error_handler(on_error)
    app.add_handler(CommandHandler("start", start))
    app.add_handler(CommandHandler("help", help_command))
    app.add_handler(CommandHandler("config", config_command))
    app.add_handler(CommandHandler("status", status_command))
    app.add_handler(CommandHandler("notices", notices_command))
    app.add_handler(CommandHandler("folders", folders_command))
    app.add_handler(CallbackQueryHandler(on_notice_delete, pattern=r"^ndel(ok)?\|"))
    app.add_handler(CallbackQueryHandler(on_folder_delete, pattern=r"^fdel(ok)?\|"))
    app.add_handler(CallbackQueryHandler(on_nop, pattern=r"^nop\|"))

    app.add_handler(ConversationHandler(
        entry_points=[CommandHandler("achievement", achievement_start)],
        states={
            ACH_FOLDER: [MessageHandler(TEXT, achievement_folder)],
            ACH_TITLE: [MessageHandler(TEXT, achievement_title)],
            ACH_CATEGORY: [CallbackQueryHandler(achievement_category, pattern=r"^cat\|")],
            ACH_DATE: [MessageHandler(TEXT, achievement_date), CommandHandler("skip", achievement_date)],
            ACH_DESCRIPTION: [MessageHandler(TEXT, achievement_description)],
            ACH_IMAGE: [MessageHandler(FILES, achievement_image), CommandHandler("skip", achievement_image)],
        },
        fallbacks=[cancel_handler],
        allow_reentry=True,
    ))
    app.add_handler(ConversationHandler(
        entry_points=[CommandHandler("upload", upload_start)],
        states={
            UP_FOLDER: [MessageHandler(TEXT, upload_folder)],
            UP_TITLE: [MessageHandler(TEXT, upload_title)],
            UP_DATE: [MessageHandler(TEXT, upload_date), CommandHandler("skip", upload_date)],
            UP_DESCRIPTION: [MessageHandler(TEXT, upload_description), CommandHandler("skip", upload_description)],
            UP_FILES: [MessageHandler(FILES, collect_file), CommandHandler("done", upload_done)],
        },
        fallbacks=[cancel_handler],
        allow_reentry=True,
    ))
    app.add_handler(ConversationHandler(
        entry_points=[CommandHandler("gallery", gallery_start)],
        states={
            GAL_FOLDER: [MessageHandler(TEXT, gallery_folder)],
            GAL_IMAGES: [MessageHandler(FILES, collect_file), CommandHandler("done", gallery_done)],
        },
        fallbacks=[cancel_handler],
        allow_reentry=True,
    ))
    app.add_handler(ConversationHandler(
        entry_points=[CommandHandler("notice", notice_start)],
        states={
            NOTICE_TITLE: [MessageHandler(TEXT, notice_title)],
            NOTICE_DATE: [MessageHandler(TEXT, notice_date), CommandHandler("skip", notice_date)],
            NOTICE_CATEGORY: [CallbackQueryHandler(notice_category, pattern=r"^ncat\|")],
            NOTICE_PINNED: [CallbackQueryHandler(notice_pinned, pattern=r"^pin\|")],
            NOTICE_CONTENT: [MessageHandler(TEXT, notice_content)],
        },
        fallbacks=[cancel_handler],
        allow_reentry=True,
    ))
    return app


# ——————————————————————————————————————————————
#                    MAIN
# ——————————————————————————————————————————————
def main():
    if not TOKEN:
        log.error("❌ BOT_TOKEN не задан.")
        return

    if not ADMIN_IDS:
        log.warning("⚠️  ADMIN_IDS не задан, консоль доступна любому пользователю!")
    if load_location() is None:
        log.warning("⚠️  GitHub не настроен, используйте /config")

    app = build_application()

    log.info("=" * 60)
    log.info("🚀 ЗАПУСК БОТА")
    log.info("=" * 60)

    if WEBHOOK_URL:
        url = WEBHOOK_URL.rstrip("/")
        if not url.endswith("/webhook"):
            url = f"{url}/webhook"
        log.info(f"🔗 Webhook URL: {url}")
        log.info(f"📡 Слушаем на: 0.0.0.0:{PORT}")
        # url_path без начального слэша
        app.run_webhook(
            listen="0.0.0.0",
            port=PORT,
            webhook_url=url,
            url_path="webhook",
            allowed_updates=Update.ALL_TYPES,
            drop_pending_updates=True,
        )
    else:
        log.info("🔄 WEBHOOK_URL не задан, запускаю polling...")
        app.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    main()
