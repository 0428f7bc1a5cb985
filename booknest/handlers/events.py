from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime, timezone

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import (
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    ConversationHandler,
    MessageHandler,
    filters,
)

from ..constants import EVENTS_SCREEN, Conversation
from ..keyboards.admin import confirm_keyboard
from ..keyboards.common import pager_row
from ..services.availability import (
    availability_label,
    event_availability,
    reservation_refusal,
    validate_seat_request,
)
from ..services.messaging import (
    MENU_LABELS,
    alert_keyboard,
    error_message,
    get_session,
    render,
    report_failure,
)
from ..services.permissions import Capability, can, enforce_route
from ..utils.errors import ApiError, AuthenticationError, AuthorizationError, NotFoundError
from ..utils.formatting import format_datetime, truncate
from ..utils.pagination import paginate
from ..utils.validators import parse_int
from . import reservations as reservation_handlers

logger = logging.getLogger(__name__)

_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)
_RESERVE_KEYS = ("reserve_event", "reserve_seats")


def _back_to_events_kb():
    return InlineKeyboardMarkup([[InlineKeyboardButton("⬅️ Retour aux événements", callback_data="events_page_1")]])


def _clear_reservation_draft(context: ContextTypes.DEFAULT_TYPE) -> None:
    for key in _RESERVE_KEYS:
        context.user_data.pop(key, None)


async def _show_events_page(update: Update, context: ContextTypes.DEFAULT_TYPE, page: int):
    chat_id = update.effective_chat.id
    session = await get_session(context, chat_id)
    search = context.user_data.get("events_search")
    ticket = session.enter(EVENTS_SCREEN)
    event_service = context.application.bot_data["event_service"]
    try:
        events = await event_service.list_published(session, search=search)
    except ApiError as exc:
        await report_failure(context, chat_id, exc, "Erreur lors du chargement des événements")
        return
    if not session.is_current(ticket):
        logger.debug("Dropping stale events list for chat_id=%s", chat_id)
        return

    if not events:
        text = f"Aucun événement ne correspond à « {search} »." if search else "Aucun événement publié pour le moment."
        await render(update, text)
        return

    events.sort(key=lambda e: e.date or _FAR_FUTURE)
    cfg = context.application.bot_data["config"]
    current = paginate(events, page, cfg.page_size)
    rows = []
    for ev in current.items:
        availability = event_availability(ev)
        marker = "⌛" if availability.is_past_event else ("⛔" if availability.is_full else "🎫")
        rows.append(
            [
                InlineKeyboardButton(
                    f"{marker} {truncate(ev.title, 32)} · {format_datetime(ev.date)}",
                    callback_data=f"event_view_{ev.event_id}",
                )
            ]
        )
    pager = pager_row("events_page", current)
    if pager:
        rows.append(pager)
    header = f"Événements ({current.total})"
    if search:
        header += f" — recherche « {search} »"
    await render(update, f"{header}\nChoisissez un événement :", InlineKeyboardMarkup(rows))


async def list_events(update: Update, context: ContextTypes.DEFAULT_TYPE):
    context.user_data.pop("events_search", None)
    await _show_events_page(update, context, page=1)


async def search_events(update: Update, context: ContextTypes.DEFAULT_TYPE):
    term = " ".join(getattr(context, "args", None) or []).strip()
    if term:
        context.user_data["events_search"] = term
    else:
        context.user_data.pop("events_search", None)
    await _show_events_page(update, context, page=1)


async def events_page(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    page = parse_int(query.data.replace("events_page_", "")) or 1
    await _show_events_page(update, context, page=page)


def event_details_text(event, availability) -> str:
    lines = [
        f"📅 {event.title}",
        f"🕒 Quand : {format_datetime(event.date)}",
        f"📍 Lieu : {event.location or '—'}",
        f"ℹ️ {event.description or 'Pas de description'}",
        f"🎟 {availability_label(availability)}",
    ]
    if availability.is_past_event:
        lines.append("⌛ Événement passé")
    if event.created_by and event.created_by.full_name:
        lines.append(f"👤 Organisé par {event.created_by.full_name}")
    return "\n".join(lines)


async def build_event_details(context: ContextTypes.DEFAULT_TYPE, session, event_id: str):
    """Event detail screen; the dedicated not-found view when the event is gone."""
    ticket = session.enter(f"{EVENTS_SCREEN}/{event_id}")
    event_service = context.application.bot_data["event_service"]
    try:
        event = await event_service.get_event(session, event_id)
    except NotFoundError:
        return "Événement introuvable.", _back_to_events_kb()
    if not session.is_current(ticket):
        return None

    availability = event_availability(event)
    user = session.user if session.is_authenticated else None
    rows = []
    # Anonymous visitors see the button too: the route guard sends them to login.
    if availability.can_reserve and (user is None or can(user, Capability.RESERVE_SEATS)):
        rows.append([InlineKeyboardButton("🎟 Réserver", callback_data=f"event_reserve_{event_id}")])
    rows.append([InlineKeyboardButton("⬅️ Retour aux événements", callback_data="events_page_1")])
    return event_details_text(event, availability), InlineKeyboardMarkup(rows)


async def view_event(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    event_id = query.data.replace("event_view_", "")
    session = await get_session(context, query.from_user.id)
    try:
        screen = await build_event_details(context, session, event_id)
    except ApiError as exc:
        await report_failure(context, query.from_user.id, exc, "Erreur lors du chargement de l'événement")
        return
    if screen is not None:
        text, markup = screen
        await query.edit_message_text(text, reply_markup=markup)


async def send_event_details(context: ContextTypes.DEFAULT_TYPE, chat_id: int, event_id: str):
    session = await get_session(context, chat_id)
    try:
        screen = await build_event_details(context, session, event_id)
    except ApiError as exc:
        await report_failure(context, chat_id, exc, "Erreur lors du chargement de l'événement")
        return
    if screen is not None:
        text, markup = screen
        await context.bot.send_message(chat_id=chat_id, text=text, reply_markup=markup)


async def start_reservation(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    event_id = query.data.replace("event_reserve_", "")
    path = f"{EVENTS_SCREEN}/{event_id}/reserve"
    session = await enforce_route(update, context, path)
    if session is None:
        return ConversationHandler.END
    session.enter(path)

    event_service = context.application.bot_data["event_service"]
    try:
        event = await event_service.get_event(session, event_id)
    except NotFoundError:
        await query.edit_message_text("Événement introuvable.", reply_markup=_back_to_events_kb())
        return ConversationHandler.END
    except ApiError as exc:
        await report_failure(context, query.from_user.id, exc, "Erreur lors du chargement de l'événement")
        return ConversationHandler.END

    refusal = reservation_refusal(event_availability(event), event.status)
    if refusal:
        await query.edit_message_text(f"⚠️ {refusal}", reply_markup=_back_to_events_kb())
        return ConversationHandler.END

    context.user_data["reserve_event"] = event
    await query.edit_message_text(
        f"🎟 {event.title}\nPlaces disponibles : {event.available_seats}\n\n"
        "Combien de places souhaitez-vous réserver ? (/cancel pour abandonner)"
    )
    return Conversation.RESERVE_SEATS


async def collect_seats(update: Update, context: ContextTypes.DEFAULT_TYPE):
    event = context.user_data.get("reserve_event")
    if event is None:
        await update.message.reply_text("La réservation a expiré, recommencez depuis l'événement.")
        return ConversationHandler.END
    seats = parse_int((update.message.text or "").strip())
    refusal = validate_seat_request(seats, event)
    if refusal:
        await update.message.reply_text(f"⚠️ {refusal}", reply_markup=alert_keyboard())
        return Conversation.RESERVE_SEATS

    context.user_data["reserve_seats"] = seats
    await update.message.reply_text(
        "Vérifiez votre réservation :\n"
        f"Événement : {event.title}\n"
        f"Date : {format_datetime(event.date)}\n"
        f"Places : {seats}",
        reply_markup=confirm_keyboard("reserve_confirm", "reserve_abort", ok_text="✅ Confirmer la réservation"),
    )
    return Conversation.RESERVE_CONFIRM


async def confirm_reservation(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    chat_id = query.from_user.id
    event = context.user_data.get("reserve_event")
    seats = context.user_data.get("reserve_seats")
    _clear_reservation_draft(context)
    if event is None or not seats:
        await query.edit_message_text("La réservation a expiré, recommencez depuis l'événement.")
        return ConversationHandler.END

    session = await get_session(context, chat_id)
    reservation_service = context.application.bot_data["reservation_service"]
    try:
        reservation = await reservation_service.create_reservation(session, event.event_id, seats)
    except (AuthenticationError, AuthorizationError):
        return ConversationHandler.END
    except ApiError as exc:
        logger.info("Reservation refused chat_id=%s event=%s: %s", chat_id, event.event_id, exc)
        await query.edit_message_text(
            f"⚠️ {error_message(exc, 'Erreur lors de la création de la réservation')}",
            reply_markup=alert_keyboard(),
        )
        return ConversationHandler.END

    await query.edit_message_text("✅ Réservation créée avec succès ! Elle est en attente de validation.")
    logger.info("User chat_id=%s reserved %s seats for event %s", chat_id, seats, event.event_id)

    ticket = session.enter(f"{EVENTS_SCREEN}/{event.event_id}/reserve/done")
    cfg = context.application.bot_data["config"]
    context.application.create_task(
        _open_reservations_later(context, session, ticket, reservation.reservation_id, cfg.redirect_delay),
        update=update,
    )
    return ConversationHandler.END


async def _open_reservations_later(context, session, ticket: int, reservation_id: str, delay: float):
    """Show "Mes réservations" after the success alert, unless the chat moved on."""
    await asyncio.sleep(delay)
    if not session.is_current(ticket):
        logger.debug("Skipping reservations redirect for chat_id=%s, screen changed", session.chat_id)
        return
    await reservation_handlers.send_my_reservations(context, session.chat_id, highlight=reservation_id)


async def abort_reservation(update: Update, context: ContextTypes.DEFAULT_TYPE):
    _clear_reservation_draft(context)
    query = getattr(update, "callback_query", None)
    if query is not None:
        await query.answer()
        await query.edit_message_text("Réservation abandonnée.", reply_markup=_back_to_events_kb())
    else:
        await update.message.reply_text("Réservation abandonnée.", reply_markup=_back_to_events_kb())
    return ConversationHandler.END


async def leave_for_menu(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """A main menu button pressed mid-reservation drops the draft and opens that screen."""
    from .menu import main_menu_router

    _clear_reservation_draft(context)
    await main_menu_router(update, context)
    return ConversationHandler.END


def setup_handlers(application):
    menu_label = filters.Regex("^(" + "|".join(re.escape(label) for label in MENU_LABELS) + ")$")

    conv = ConversationHandler(
        entry_points=[
            CallbackQueryHandler(start_reservation, pattern="^event_reserve_.*$"),
        ],
        states={
            Conversation.RESERVE_SEATS: [
                MessageHandler(filters.TEXT & ~filters.COMMAND & ~menu_label, collect_seats),
            ],
            Conversation.RESERVE_CONFIRM: [
                CallbackQueryHandler(confirm_reservation, pattern="^reserve_confirm$"),
                CallbackQueryHandler(abort_reservation, pattern="^reserve_abort$"),
            ],
        },
        fallbacks=[
            CommandHandler("cancel", abort_reservation),
            MessageHandler(menu_label, leave_for_menu),
        ],
        per_user=True,
    )
    application.add_handler(conv)
    application.add_handler(CommandHandler("events", search_events))
    application.add_handler(CommandHandler("search", search_events))
    application.add_handler(CallbackQueryHandler(events_page, pattern=r"^events_page_\d+$"))
    application.add_handler(CallbackQueryHandler(view_event, pattern="^event_view_.*$"))
