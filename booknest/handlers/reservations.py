from __future__ import annotations

import logging
from io import BytesIO
from typing import Optional, Tuple

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import CallbackQueryHandler, ContextTypes

from ..constants import (
    MY_RESERVATIONS_SCREEN,
    PARTICIPANT_DASHBOARD_SCREEN,
    ReservationStatus,
)
from ..keyboards.admin import confirm_keyboard
from ..keyboards.common import filter_row, pager_row, parse_list_callback
from ..models import utcnow
from ..services.dashboard import count_by_status
from ..services.lifecycle import ReservationAction, allowed_actions, can_download_ticket
from ..services.messaging import (
    get_session,
    render,
    report_failure,
    send_alert,
)
from ..services.permissions import require_screen
from ..utils.errors import ApiError, NotFoundError
from ..utils.formatting import RESERVATION_STATUS_LABELS, event_title, format_datetime, truncate
from ..utils.pagination import paginate

logger = logging.getLogger(__name__)

LIST_PREFIX = "myres"
STATUS_FILTERS = [
    ("ALL", "Toutes"),
    (ReservationStatus.PENDING.value, "⏳"),
    (ReservationStatus.CONFIRMED.value, "✅"),
    (ReservationStatus.REFUSED.value, "⛔"),
    (ReservationStatus.CANCELED.value, "❌"),
]
_FILTER_VALUES = "|".join(value for value, _ in STATUS_FILTERS)

Screen = Tuple[str, InlineKeyboardMarkup]


def _back_to_list_kb():
    return InlineKeyboardMarkup(
        [[InlineKeyboardButton("⬅️ Mes réservations", callback_data=f"{LIST_PREFIX}_ALL_1")]]
    )


async def build_my_reservations(
    context: ContextTypes.DEFAULT_TYPE,
    session,
    selected: str = "ALL",
    page: int = 1,
    highlight: Optional[str] = None,
) -> Optional[Screen]:
    """Fetch the participant's reservations; None when the chat moved on meanwhile."""
    ticket = session.enter(MY_RESERVATIONS_SCREEN)
    reservation_service = context.application.bot_data["reservation_service"]
    reservations = await reservation_service.list_mine(session)
    if not session.is_current(ticket):
        logger.debug("Dropping stale reservation list for chat_id=%s", session.chat_id)
        return None

    if selected != "ALL":
        reservations = [r for r in reservations if r.status.value == selected]
    reservations.sort(key=lambda r: r.created_at or utcnow(), reverse=True)
    cfg = context.application.bot_data["config"]
    current = paginate(reservations, page, cfg.page_size)

    rows = [filter_row(LIST_PREFIX, STATUS_FILTERS, selected)]
    for reservation in current.items:
        mark = "👉 " if reservation.reservation_id == highlight else ""
        label = RESERVATION_STATUS_LABELS[reservation.status]
        rows.append(
            [
                InlineKeyboardButton(
                    f"{mark}{truncate(event_title(reservation), 28)} · {reservation.number_of_seats} pl. · {label}",
                    callback_data=f"{LIST_PREFIX}_view_{reservation.reservation_id}",
                )
            ]
        )
    pager = pager_row(LIST_PREFIX, current, selected)
    if pager:
        rows.append(pager)

    if current.total:
        text = f"🎟 Mes réservations ({current.total})"
    else:
        text = "🎟 Vous n'avez aucune réservation." if selected == "ALL" else "Aucune réservation avec ce statut."
    return text, InlineKeyboardMarkup(rows)


async def _present_list(update: Update, context: ContextTypes.DEFAULT_TYPE, selected: str, page: int):
    chat_id = update.effective_chat.id
    session = await get_session(context, chat_id)
    try:
        screen = await build_my_reservations(context, session, selected, page)
    except ApiError as exc:
        await report_failure(context, chat_id, exc, "Erreur lors du chargement des réservations")
        return
    if screen is not None:
        await render(update, *screen)


async def send_my_reservations(context: ContextTypes.DEFAULT_TYPE, chat_id: int, highlight: Optional[str] = None):
    """Open the reservation list in a new message, e.g. after a booking succeeded."""
    session = await get_session(context, chat_id)
    try:
        screen = await build_my_reservations(context, session, highlight=highlight)
    except ApiError as exc:
        await report_failure(context, chat_id, exc, "Erreur lors du chargement des réservations")
        return
    if screen is not None:
        text, markup = screen
        await context.bot.send_message(chat_id=chat_id, text=text, reply_markup=markup)


@require_screen(MY_RESERVATIONS_SCREEN)
async def show_my_reservations(update: Update, context: ContextTypes.DEFAULT_TYPE):
    await _present_list(update, context, "ALL", 1)


@require_screen(MY_RESERVATIONS_SCREEN)
async def my_reservations_page(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    selected, page = parse_list_callback(query.data, LIST_PREFIX)
    await _present_list(update, context, selected, page)


async def _load_reservation(context, session, reservation_id: str):
    reservation_service = context.application.bot_data["reservation_service"]
    reservation = await reservation_service.get_reservation(session, reservation_id)
    if reservation.event is None and reservation.event_id:
        # Some payloads carry only the event id; the cancel rule needs the date.
        try:
            reservation.event = await context.application.bot_data["event_service"].get_event(
                session, reservation.event_id
            )
        except NotFoundError:
            logger.info("Event %s of reservation %s no longer exists", reservation.event_id, reservation_id)
    return reservation


def reservation_details_text(reservation) -> str:
    event = reservation.event
    lines = [
        f"🎟 Réservation — {event_title(reservation)}",
        f"Statut : {RESERVATION_STATUS_LABELS[reservation.status]}",
        f"Places : {reservation.number_of_seats}",
        f"Réservée le : {format_datetime(reservation.created_at)}",
    ]
    if event is not None:
        lines.append(f"Date de l'événement : {format_datetime(event.date)}")
        lines.append(f"Lieu : {event.location or '—'}")
    return "\n".join(lines)


@require_screen(MY_RESERVATIONS_SCREEN)
async def view_reservation(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    reservation_id = query.data.replace(f"{LIST_PREFIX}_view_", "")
    session = await get_session(context, query.from_user.id)
    ticket = session.enter(f"{MY_RESERVATIONS_SCREEN}/{reservation_id}")
    try:
        reservation = await _load_reservation(context, session, reservation_id)
    except NotFoundError:
        await query.edit_message_text("Réservation introuvable.", reply_markup=_back_to_list_kb())
        return
    except ApiError as exc:
        await report_failure(context, query.from_user.id, exc, "Erreur lors du chargement de la réservation")
        return
    if not session.is_current(ticket):
        return

    role = session.user.role
    rows = []
    if ReservationAction.CANCEL in allowed_actions(reservation, role):
        rows.append(
            [InlineKeyboardButton("❌ Annuler la réservation", callback_data=f"{LIST_PREFIX}_cancel_{reservation_id}")]
        )
    if can_download_ticket(reservation, role):
        rows.append(
            [InlineKeyboardButton("📄 Télécharger le billet", callback_data=f"{LIST_PREFIX}_ticket_{reservation_id}")]
        )
    rows.append([InlineKeyboardButton("⬅️ Mes réservations", callback_data=f"{LIST_PREFIX}_ALL_1")])
    await query.edit_message_text(reservation_details_text(reservation), reply_markup=InlineKeyboardMarkup(rows))


@require_screen(MY_RESERVATIONS_SCREEN)
async def ask_cancel(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    reservation_id = query.data.replace(f"{LIST_PREFIX}_cancel_", "")
    await query.edit_message_text(
        "Êtes-vous sûr de vouloir annuler cette réservation ?",
        reply_markup=confirm_keyboard(
            f"{LIST_PREFIX}_docancel_{reservation_id}",
            f"{LIST_PREFIX}_view_{reservation_id}",
            ok_text="✅ Oui, annuler",
        ),
    )


@require_screen(MY_RESERVATIONS_SCREEN)
async def perform_cancel(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    chat_id = query.from_user.id
    reservation_id = query.data.replace(f"{LIST_PREFIX}_docancel_", "")
    session = await get_session(context, chat_id)
    reservation_service = context.application.bot_data["reservation_service"]
    # The backend decides; a stale button may still be refused here.
    try:
        await reservation_service.cancel(session, reservation_id)
    except ApiError as exc:
        await report_failure(context, chat_id, exc, "Erreur lors de l'annulation de la réservation")
        return
    logger.info("Reservation %s canceled by chat_id=%s", reservation_id, chat_id)
    await send_alert(context, chat_id, "Réservation annulée avec succès")
    await _present_list(update, context, "ALL", 1)


@require_screen(MY_RESERVATIONS_SCREEN)
async def download_ticket(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    chat_id = query.from_user.id
    reservation_id = query.data.replace(f"{LIST_PREFIX}_ticket_", "")
    session = await get_session(context, chat_id)
    reservation_service = context.application.bot_data["reservation_service"]
    try:
        payload = await reservation_service.fetch_ticket(session, reservation_id)
    except ApiError as exc:
        await report_failure(context, chat_id, exc, "Erreur lors du téléchargement du billet")
        return
    buf = BytesIO(payload or b"")
    buf.name = f"ticket-{reservation_id}.pdf"
    await context.bot.send_document(
        chat_id=chat_id, document=buf, filename=buf.name, caption="📄 Votre billet"
    )


async def build_participant_dashboard(context, session) -> Optional[str]:
    ticket = session.enter(PARTICIPANT_DASHBOARD_SCREEN)
    reservations = await context.application.bot_data["reservation_service"].list_mine(session)
    open_events = await context.application.bot_data["event_service"].list_upcoming(session)
    if not session.is_current(ticket):
        return None
    counts = count_by_status(reservations)
    now = utcnow()
    upcoming = [
        r
        for r in reservations
        if r.status == ReservationStatus.CONFIRMED and r.event is not None and r.event.date and r.event.date > now
    ]
    upcoming.sort(key=lambda r: r.event.date)
    user = session.user
    lines = [
        f"👋 Bonjour {user.first_name or user.email}",
        "",
        f"Réservations : {len(reservations)}",
    ]
    lines += [f"  {RESERVATION_STATUS_LABELS[status]} : {count}" for status, count in counts.items()]
    lines.append("")
    if upcoming:
        lines.append("Prochains événements confirmés :")
        lines += [f"• {r.event.title} — {format_datetime(r.event.date)}" for r in upcoming[:5]]
    else:
        lines.append("Aucun événement confirmé à venir.")
    lines += ["", f"Événements ouverts à venir : {len(open_events)}"]
    return "\n".join(lines)


@require_screen(PARTICIPANT_DASHBOARD_SCREEN)
async def show_dashboard(update: Update, context: ContextTypes.DEFAULT_TYPE):
    chat_id = update.effective_chat.id
    session = await get_session(context, chat_id)
    try:
        text = await build_participant_dashboard(context, session)
    except ApiError as exc:
        await report_failure(context, chat_id, exc, "Erreur lors du chargement du tableau de bord")
        return
    if text is None:
        return
    markup = InlineKeyboardMarkup(
        [
            [InlineKeyboardButton("🎟 Mes réservations", callback_data=f"{LIST_PREFIX}_ALL_1")],
            [InlineKeyboardButton("📅 Voir les événements", callback_data="events_page_1")],
        ]
    )
    await render(update, text, markup)


def setup_handlers(application):
    application.add_handler(
        CallbackQueryHandler(my_reservations_page, pattern=rf"^{LIST_PREFIX}_({_FILTER_VALUES})_\d+$")
    )
    application.add_handler(CallbackQueryHandler(view_reservation, pattern=rf"^{LIST_PREFIX}_view_.+$"))
    application.add_handler(CallbackQueryHandler(ask_cancel, pattern=rf"^{LIST_PREFIX}_cancel_.+$"))
    application.add_handler(CallbackQueryHandler(perform_cancel, pattern=rf"^{LIST_PREFIX}_docancel_.+$"))
    application.add_handler(CallbackQueryHandler(download_ticket, pattern=rf"^{LIST_PREFIX}_ticket_.+$"))
