from __future__ import annotations

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import (
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    ConversationHandler,
    MessageHandler,
    filters,
)

from ..constants import (
    ADMIN_DASHBOARD_SCREEN,
    ADMIN_EVENTS_SCREEN,
    ADMIN_RESERVATIONS_SCREEN,
    ADMIN_USERS_SCREEN,
    Conversation,
    EventStatus,
    ReservationStatus,
    Role,
)
from ..keyboards.admin import admin_panel_kb, back_keyboard, confirm_keyboard
from ..keyboards.common import filter_row, pager_row, parse_list_callback
from ..logging_config import logger
from ..models import ReservationFilters
from ..services.availability import availability_label, event_availability
from ..services.dashboard import build_dashboard_stats
from ..services.export import reservations_workbook
from ..services.lifecycle import (
    ReservationAction,
    allowed_actions,
    allowed_event_transitions,
    ensure_allowed,
    is_terminal,
    target_status,
)
from ..services.messaging import get_session, render, report_failure, send_alert
from ..services.permissions import require_screen
from ..utils.errors import ApiError, InvalidTransition, NotFoundError
from ..utils.formatting import (
    EVENT_STATUS_LABELS,
    RESERVATION_STATUS_LABELS,
    event_title,
    format_datetime,
    truncate,
)
from ..utils.pagination import paginate
from ..utils.validators import parse_event_datetime, parse_int

EVENT_FILTERS = [
    ("ALL", "Tous"),
    (EventStatus.DRAFT.value, "📝"),
    (EventStatus.PUBLISHED.value, "🟢"),
    (EventStatus.CANCELED.value, "🚫"),
]
RESERVATION_FILTERS = [
    ("ALL", "Toutes"),
    (ReservationStatus.PENDING.value, "⏳"),
    (ReservationStatus.CONFIRMED.value, "✅"),
    (ReservationStatus.REFUSED.value, "⛔"),
    (ReservationStatus.CANCELED.value, "❌"),
]

ACTION_PROMPTS = {
    ReservationAction.CONFIRM: ("Confirmer cette réservation ?", "✅ Confirmer"),
    ReservationAction.REFUSE: ("Refuser cette réservation ?", "⛔ Refuser"),
    ReservationAction.ADMIN_CANCEL: ("Annuler cette réservation confirmée ?", "❌ Annuler la réservation"),
}
ACTION_SUCCESS = {
    ReservationAction.CONFIRM: "Réservation confirmée",
    ReservationAction.REFUSE: "Réservation refusée",
    ReservationAction.ADMIN_CANCEL: "Réservation annulée",
}
EVENT_STATUS_ACTIONS = {
    EventStatus.PUBLISHED: "🟢 Publier",
    EventStatus.CANCELED: "🚫 Annuler l'événement",
}
EDITABLE_EVENT_FIELDS = {
    "title": "Titre",
    "description": "Description",
    "date": "Date (YYYY-MM-DD HH:MM)",
    "location": "Lieu",
    "max_participants": "Nombre de places",
}

_NEW_EVENT_KEYS = ["new_event_title", "new_event_desc", "new_event_date", "new_event_location"]
_EDIT_EVENT_KEYS = ["edit_event", "edit_field"]


def _clear_draft(context: ContextTypes.DEFAULT_TYPE, keys) -> None:
    for key in keys:
        context.user_data.pop(key, None)


def _split_action(data: str, prefix: str):
    """``<prefix><action>_<id>`` -> (action, id); ids never contain underscores."""
    action, _, object_id = data[len(prefix):].rpartition("_")
    return action, object_id


# --- panel & dashboard ---------------------------------------------------


@require_screen(ADMIN_DASHBOARD_SCREEN)
async def admin_entry(update: Update, context: ContextTypes.DEFAULT_TYPE):
    session = await get_session(context, update.effective_chat.id)
    session.enter(ADMIN_DASHBOARD_SCREEN)
    await update.effective_message.reply_text("⚙️ Administration", reply_markup=admin_panel_kb())


@require_screen(ADMIN_DASHBOARD_SCREEN)
async def admin_panel(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    session = await get_session(context, query.from_user.id)
    session.enter(ADMIN_DASHBOARD_SCREEN)
    await query.edit_message_text("⚙️ Administration", reply_markup=admin_panel_kb())


@require_screen(ADMIN_DASHBOARD_SCREEN)
async def dashboard(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    chat_id = query.from_user.id
    session = await get_session(context, chat_id)
    ticket = session.enter(ADMIN_DASHBOARD_SCREEN)
    event_service = context.application.bot_data["event_service"]
    reservation_service = context.application.bot_data["reservation_service"]
    try:
        events = await event_service.list_events(session)
        reservations = await reservation_service.list_all(session)
    except ApiError as exc:
        await report_failure(context, chat_id, exc, "Erreur lors du chargement des statistiques")
        return
    if not session.is_current(ticket):
        return

    stats = build_dashboard_stats(events, reservations)
    lines = [
        "📊 Tableau de bord",
        f"Événements : {stats.total_events}",
        f"Événements à venir : {stats.upcoming_events}",
        f"Taux de remplissage moyen : {stats.average_fill_rate * 100:.0f}%",
        f"Réservations : {stats.total_reservations}",
    ]
    for status in ReservationStatus:
        lines.append(f"  {RESERVATION_STATUS_LABELS[status]} : {stats.reservations_by_status.get(status.value, 0)}")
    await query.edit_message_text("\n".join(lines), reply_markup=back_keyboard())


# --- events --------------------------------------------------------------


async def _present_events(update: Update, context: ContextTypes.DEFAULT_TYPE, selected: str, page: int):
    chat_id = update.effective_chat.id
    session = await get_session(context, chat_id)
    ticket = session.enter(ADMIN_EVENTS_SCREEN)
    event_service = context.application.bot_data["event_service"]
    try:
        events = await event_service.list_events(session)
    except ApiError as exc:
        await report_failure(context, chat_id, exc, "Erreur lors du chargement des événements")
        return
    if not session.is_current(ticket):
        return

    if selected != "ALL":
        events = [e for e in events if e.status.value == selected]
    cfg = context.application.bot_data["config"]
    current = paginate(events, page, cfg.admin_page_size)
    rows = [filter_row("admin_events", EVENT_FILTERS, selected)]
    for ev in current.items:
        rows.append(
            [
                InlineKeyboardButton(
                    f"{EVENT_STATUS_LABELS[ev.status][:1]} {truncate(ev.title, 30)} · {format_datetime(ev.date)}",
                    callback_data=f"admin_ev_{ev.event_id}",
                )
            ]
        )
    pager = pager_row("admin_events", current, selected)
    if pager:
        rows.append(pager)
    rows.append([InlineKeyboardButton("➕ Créer un événement", callback_data="admin_add_event")])
    rows.append([InlineKeyboardButton("⬅️ Retour", callback_data="admin_panel")])
    text = f"📅 Événements ({current.total})" if current.total else "Aucun événement."
    await render(update, text, InlineKeyboardMarkup(rows))


@require_screen(ADMIN_EVENTS_SCREEN)
async def events_list(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    selected, page = parse_list_callback(query.data, "admin_events")
    await _present_events(update, context, selected, page)


def _event_admin_keyboard(event) -> InlineKeyboardMarkup:
    rows = []
    for status in allowed_event_transitions(event.status, Role.ADMIN):
        rows.append(
            [
                InlineKeyboardButton(
                    EVENT_STATUS_ACTIONS[status], callback_data=f"admin_evstatus_{status.value}_{event.event_id}"
                )
            ]
        )
    for field, label in EDITABLE_EVENT_FIELDS.items():
        rows.append([InlineKeyboardButton(f"✏️ {label}", callback_data=f"admin_evedit_{field}_{event.event_id}")])
    rows.append([InlineKeyboardButton("🎟 Réservations", callback_data=f"admin_evres_{event.event_id}")])
    rows.append([InlineKeyboardButton("🗑 Supprimer", callback_data=f"admin_evdel_{event.event_id}")])
    rows.append([InlineKeyboardButton("⬅️ Événements", callback_data="admin_events_ALL_1")])
    return InlineKeyboardMarkup(rows)


def _event_admin_text(event) -> str:
    availability = event_availability(event)
    return (
        f"📅 {event.title}\n"
        f"Statut : {EVENT_STATUS_LABELS[event.status]}\n"
        f"Date : {format_datetime(event.date)}\n"
        f"Lieu : {event.location or '—'}\n"
        f"Places : {availability_label(availability)} (réservées : {event.seats_held})\n"
        f"Description : {event.description or '—'}"
    )


async def _show_event(update: Update, context: ContextTypes.DEFAULT_TYPE, event_id: str):
    chat_id = update.effective_chat.id
    session = await get_session(context, chat_id)
    ticket = session.enter(f"{ADMIN_EVENTS_SCREEN}/{event_id}")
    try:
        event = await context.application.bot_data["event_service"].get_event(session, event_id)
    except NotFoundError:
        await render(update, "Événement introuvable.", back_keyboard("admin_events_ALL_1"))
        return
    except ApiError as exc:
        await report_failure(context, chat_id, exc, "Erreur lors du chargement de l'événement")
        return
    if session.is_current(ticket):
        await render(update, _event_admin_text(event), _event_admin_keyboard(event))


@require_screen(ADMIN_EVENTS_SCREEN)
async def event_view(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    await _show_event(update, context, query.data.replace("admin_ev_", ""))


@require_screen(ADMIN_EVENTS_SCREEN)
async def event_status(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    chat_id = query.from_user.id
    raw_status, event_id = _split_action(query.data, "admin_evstatus_")
    session = await get_session(context, chat_id)
    try:
        await context.application.bot_data["event_service"].update_status(
            session, event_id, EventStatus(raw_status)
        )
    except ApiError as exc:
        await report_failure(context, chat_id, exc, "Erreur lors du changement de statut")
        return
    logger.info("Admin chat_id=%s set event %s to %s", chat_id, event_id, raw_status)
    await send_alert(context, chat_id, "Statut de l'événement mis à jour")
    await _show_event(update, context, event_id)


@require_screen(ADMIN_EVENTS_SCREEN)
async def event_delete_confirm(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    event_id = query.data.replace("admin_evdel_", "")
    await query.edit_message_text(
        "Supprimer cet événement ? Cette action est irréversible.",
        reply_markup=confirm_keyboard(f"admin_evdelgo_{event_id}", f"admin_ev_{event_id}", ok_text="🗑 Supprimer"),
    )


@require_screen(ADMIN_EVENTS_SCREEN)
async def event_delete_go(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    chat_id = query.from_user.id
    event_id = query.data.replace("admin_evdelgo_", "")
    session = await get_session(context, chat_id)
    try:
        await context.application.bot_data["event_service"].delete_event(session, event_id)
    except ApiError as exc:
        await report_failure(context, chat_id, exc, "Erreur lors de la suppression de l'événement")
        return
    logger.info("Admin chat_id=%s deleted event %s", chat_id, event_id)
    await send_alert(context, chat_id, "Événement supprimé")
    await _present_events(update, context, "ALL", 1)


@require_screen(ADMIN_EVENTS_SCREEN)
async def event_reservations(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    chat_id = query.from_user.id
    event_id = query.data.replace("admin_evres_", "")
    session = await get_session(context, chat_id)
    ticket = session.enter(f"{ADMIN_EVENTS_SCREEN}/{event_id}/reservations")
    try:
        reservations = await context.application.bot_data["reservation_service"].list_for_event(session, event_id)
    except ApiError as exc:
        await report_failure(context, chat_id, exc, "Erreur lors du chargement des réservations")
        return
    if not session.is_current(ticket):
        return
    rows = [[_reservation_button(r)] for r in reservations[: context.application.bot_data["config"].admin_page_size]]
    rows.append([InlineKeyboardButton("⬅️ Événement", callback_data=f"admin_ev_{event_id}")])
    text = f"🎟 Réservations de l'événement ({len(reservations)})" if reservations else "Aucune réservation."
    await query.edit_message_text(text, reply_markup=InlineKeyboardMarkup(rows))


# --- event creation ------------------------------------------------------


@require_screen(ADMIN_EVENTS_SCREEN)
async def add_event_start(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    _clear_draft(context, _NEW_EVENT_KEYS)
    await query.edit_message_text("Titre de l'événement : (/cancel pour abandonner)")
    return Conversation.EVENT_TITLE


async def add_event_title(update: Update, context: ContextTypes.DEFAULT_TYPE):
    title = (update.message.text or "").strip()
    if len(title) < 3:
        await update.message.reply_text("⚠️ Le titre doit contenir au moins 3 caractères.")
        return Conversation.EVENT_TITLE
    context.user_data["new_event_title"] = title
    await update.message.reply_text("Description :")
    return Conversation.EVENT_DESCRIPTION


async def add_event_description(update: Update, context: ContextTypes.DEFAULT_TYPE):
    context.user_data["new_event_desc"] = (update.message.text or "").strip()
    await update.message.reply_text("Date et heure (YYYY-MM-DD HH:MM) :")
    return Conversation.EVENT_DATE


async def add_event_date(update: Update, context: ContextTypes.DEFAULT_TYPE):
    date = parse_event_datetime(update.message.text)
    if date is None:
        await update.message.reply_text(
            "⚠️ La date doit être au format YYYY-MM-DD HH:MM\nExemple : 2026-02-12 18:30"
        )
        return Conversation.EVENT_DATE
    context.user_data["new_event_date"] = date
    await update.message.reply_text("Lieu :")
    return Conversation.EVENT_LOCATION


async def add_event_location(update: Update, context: ContextTypes.DEFAULT_TYPE):
    context.user_data["new_event_location"] = (update.message.text or "").strip()
    await update.message.reply_text("Nombre de places :")
    return Conversation.EVENT_SEATS


async def add_event_seats(update: Update, context: ContextTypes.DEFAULT_TYPE):
    seats = parse_int((update.message.text or "").strip())
    if not seats or seats <= 0:
        await update.message.reply_text("⚠️ Entrez un nombre de places positif :")
        return Conversation.EVENT_SEATS
    chat_id = update.effective_chat.id
    session = await get_session(context, chat_id)
    try:
        event = await context.application.bot_data["event_service"].create_event(
            session,
            title=context.user_data["new_event_title"],
            description=context.user_data["new_event_desc"],
            date=context.user_data["new_event_date"],
            location=context.user_data["new_event_location"],
            max_participants=seats,
        )
    except ApiError as exc:
        _clear_draft(context, _NEW_EVENT_KEYS)
        await report_failure(context, chat_id, exc, "Erreur lors de la création de l'événement")
        return ConversationHandler.END
    _clear_draft(context, _NEW_EVENT_KEYS)
    logger.info("Admin chat_id=%s created event %s", chat_id, event.event_id)
    await update.message.reply_text(
        f"✅ Événement créé : {event.title} ({EVENT_STATUS_LABELS[event.status]})",
        reply_markup=_event_admin_keyboard(event),
    )
    return ConversationHandler.END


# --- event edition -------------------------------------------------------


@require_screen(ADMIN_EVENTS_SCREEN)
async def edit_event_start(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    chat_id = query.from_user.id
    field, event_id = _split_action(query.data, "admin_evedit_")
    if field not in EDITABLE_EVENT_FIELDS:
        return ConversationHandler.END
    session = await get_session(context, chat_id)
    try:
        event = await context.application.bot_data["event_service"].get_event(session, event_id)
    except ApiError as exc:
        await report_failure(context, chat_id, exc, "Erreur lors du chargement de l'événement")
        return ConversationHandler.END
    context.user_data["edit_event"] = event
    context.user_data["edit_field"] = field
    await query.edit_message_text(
        f"Nouvelle valeur pour « {EDITABLE_EVENT_FIELDS[field]} » : (/cancel pour abandonner)"
    )
    return Conversation.EDIT_EVENT_VALUE


def _parse_event_change(field: str, raw: str, event):
    """Return ``(value, error)`` for an edited field."""
    raw = (raw or "").strip()
    if field == "date":
        value = parse_event_datetime(raw)
        return (value, None) if value else (None, "La date doit être au format YYYY-MM-DD HH:MM")
    if field == "max_participants":
        value = parse_int(raw)
        if not value or value <= 0:
            return None, "Entrez un nombre de places positif"
        if value < event.seats_held:
            return None, f"Le nombre de places ne peut pas être inférieur aux places déjà réservées ({event.seats_held})"
        return value, None
    if field == "title" and len(raw) < 3:
        return None, "Le titre doit contenir au moins 3 caractères"
    return raw, None


async def edit_event_value(update: Update, context: ContextTypes.DEFAULT_TYPE):
    event = context.user_data.get("edit_event")
    field = context.user_data.get("edit_field")
    if event is None or field is None:
        return ConversationHandler.END
    value, error = _parse_event_change(field, update.message.text, event)
    if error:
        await update.message.reply_text(f"⚠️ {error}")
        return Conversation.EDIT_EVENT_VALUE
    chat_id = update.effective_chat.id
    session = await get_session(context, chat_id)
    try:
        updated = await context.application.bot_data["event_service"].update_event(
            session, event.event_id, **{field: value}
        )
    except ApiError as exc:
        _clear_draft(context, _EDIT_EVENT_KEYS)
        await report_failure(context, chat_id, exc, "Erreur lors de la mise à jour de l'événement")
        return ConversationHandler.END
    _clear_draft(context, _EDIT_EVENT_KEYS)
    logger.info("Admin chat_id=%s updated event %s field=%s", chat_id, event.event_id, field)
    await update.message.reply_text(
        "✅ Événement mis à jour\n\n" + _event_admin_text(updated), reply_markup=_event_admin_keyboard(updated)
    )
    return ConversationHandler.END


async def admin_cancel(update: Update, context: ContextTypes.DEFAULT_TYPE):
    _clear_draft(context, _NEW_EVENT_KEYS + _EDIT_EVENT_KEYS)
    await update.message.reply_text("Annulé.", reply_markup=admin_panel_kb())
    return ConversationHandler.END


# --- reservation moderation ----------------------------------------------


def _reservation_button(reservation) -> InlineKeyboardButton:
    who = reservation.user.full_name if reservation.user else reservation.user_id
    return InlineKeyboardButton(
        f"{RESERVATION_STATUS_LABELS[reservation.status][:1]} {truncate(event_title(reservation), 20)}"
        f" · {truncate(who, 16)} · {reservation.number_of_seats} pl.",
        callback_data=f"admin_rv_{reservation.reservation_id}",
    )


async def _present_reservations(update: Update, context: ContextTypes.DEFAULT_TYPE, selected: str, page: int):
    chat_id = update.effective_chat.id
    session = await get_session(context, chat_id)
    ticket = session.enter(ADMIN_RESERVATIONS_SCREEN)
    status = None if selected == "ALL" else ReservationStatus(selected)
    try:
        reservations = await context.application.bot_data["reservation_service"].list_all(
            session, ReservationFilters(status=status)
        )
    except ApiError as exc:
        await report_failure(context, chat_id, exc, "Erreur lors du chargement des réservations")
        return
    if not session.is_current(ticket):
        logger.debug("Dropping stale moderation list for chat_id=%s", chat_id)
        return

    cfg = context.application.bot_data["config"]
    current = paginate(reservations, page, cfg.admin_page_size)
    rows = [filter_row("admin_res", RESERVATION_FILTERS, selected)]
    rows += [[_reservation_button(r)] for r in current.items]
    pager = pager_row("admin_res", current, selected)
    if pager:
        rows.append(pager)
    rows.append([InlineKeyboardButton("⬅️ Retour", callback_data="admin_panel")])
    text = f"🎟 Réservations ({current.total})" if current.total else "Aucune réservation."
    await render(update, text, InlineKeyboardMarkup(rows))


@require_screen(ADMIN_RESERVATIONS_SCREEN)
async def reservations_list(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    selected, page = parse_list_callback(query.data, "admin_res")
    await _present_reservations(update, context, selected, page)


@require_screen(ADMIN_RESERVATIONS_SCREEN)
async def reservation_view(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    chat_id = query.from_user.id
    reservation_id = query.data.replace("admin_rv_", "")
    session = await get_session(context, chat_id)
    ticket = session.enter(f"{ADMIN_RESERVATIONS_SCREEN}/{reservation_id}")
    try:
        reservation = await context.application.bot_data["reservation_service"].get_reservation(
            session, reservation_id
        )
    except NotFoundError:
        await query.edit_message_text("Réservation introuvable.", reply_markup=back_keyboard("admin_res_ALL_1"))
        return
    except ApiError as exc:
        await report_failure(context, chat_id, exc, "Erreur lors du chargement de la réservation")
        return
    if not session.is_current(ticket):
        return

    user = reservation.user
    text = (
        f"🎟 {event_title(reservation)}\n"
        f"Participant : {user.full_name if user else reservation.user_id}"
        f"{f' <{user.email}>' if user and user.email else ''}\n"
        f"Places : {reservation.number_of_seats}\n"
        f"Statut : {RESERVATION_STATUS_LABELS[reservation.status]}\n"
        f"Créée le : {format_datetime(reservation.created_at)}"
    )
    rows = [
        [InlineKeyboardButton(ACTION_PROMPTS[action][1], callback_data=f"admin_ract_{action.value}_{reservation_id}")]
        for action in allowed_actions(reservation, Role.ADMIN)
    ]
    rows.append([InlineKeyboardButton("⬅️ Réservations", callback_data="admin_res_ALL_1")])
    await query.edit_message_text(text, reply_markup=InlineKeyboardMarkup(rows))


@require_screen(ADMIN_RESERVATIONS_SCREEN)
async def reservation_action_prompt(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    chat_id = query.from_user.id
    raw_action, reservation_id = _split_action(query.data, "admin_ract_")
    action = ReservationAction(raw_action)
    session = await get_session(context, chat_id)
    try:
        reservation = await context.application.bot_data["reservation_service"].get_reservation(
            session, reservation_id
        )
    except ApiError as exc:
        await report_failure(context, chat_id, exc, "Erreur lors du chargement de la réservation")
        return
    try:
        ensure_allowed(action, reservation, Role.ADMIN)
    except InvalidTransition as exc:
        # Moderated from another chat since the detail screen was drawn.
        logger.info("Stale moderation button chat_id=%s: %s", chat_id, exc)
        label = RESERVATION_STATUS_LABELS[reservation.status]
        suffix = " (clôturée)" if is_terminal(reservation.status) else ""
        await query.edit_message_text(
            f"⚠️ Action impossible, statut actuel : {label}{suffix}",
            reply_markup=back_keyboard(f"admin_rv_{reservation_id}"),
        )
        return

    prompt, ok_text = ACTION_PROMPTS[action]
    await query.edit_message_text(
        prompt,
        reply_markup=confirm_keyboard(
            f"admin_rgo_{action.value}_{reservation_id}", f"admin_rv_{reservation_id}", ok_text=ok_text
        ),
    )


async def _perform_moderation(context, session, action: ReservationAction, reservation_id: str):
    reservation_service = context.application.bot_data["reservation_service"]
    operations = {
        ReservationAction.CONFIRM: reservation_service.confirm,
        ReservationAction.REFUSE: reservation_service.refuse,
        ReservationAction.ADMIN_CANCEL: reservation_service.admin_cancel,
    }
    return await operations[action](session, reservation_id)


@require_screen(ADMIN_RESERVATIONS_SCREEN)
async def reservation_action_go(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    chat_id = query.from_user.id
    raw_action, reservation_id = _split_action(query.data, "admin_rgo_")
    action = ReservationAction(raw_action)
    session = await get_session(context, chat_id)
    try:
        await _perform_moderation(context, session, action, reservation_id)
    except ApiError as exc:
        await report_failure(context, chat_id, exc, "Erreur lors de la mise à jour de la réservation")
        return
    logger.info(
        "Admin chat_id=%s applied %s to reservation %s (now %s)",
        chat_id,
        action.value,
        reservation_id,
        target_status(action).value,
    )
    await send_alert(context, chat_id, ACTION_SUCCESS[action])
    await _present_reservations(update, context, "ALL", 1)


# --- users ---------------------------------------------------------------


@require_screen(ADMIN_USERS_SCREEN)
async def users_list(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    chat_id = query.from_user.id
    page = parse_int(query.data.replace("admin_users_", "")) or 1
    session = await get_session(context, chat_id)
    ticket = session.enter(ADMIN_USERS_SCREEN)
    try:
        users = await context.application.bot_data["user_service"].list_users(session)
    except ApiError as exc:
        await report_failure(context, chat_id, exc, "Erreur lors du chargement des utilisateurs")
        return
    if not session.is_current(ticket):
        return
    current = paginate(users, page, context.application.bot_data["config"].admin_page_size)
    rows = [
        [
            InlineKeyboardButton(
                f"{'⚙️' if u.is_admin else '👤'} {u.full_name or u.email}", callback_data=f"admin_user_{u.user_id}"
            )
        ]
        for u in current.items
    ]
    pager = pager_row("admin_users", current)
    if pager:
        rows.append(pager)
    rows.append([InlineKeyboardButton("⬅️ Retour", callback_data="admin_panel")])
    await query.edit_message_text(f"👥 Utilisateurs ({current.total})", reply_markup=InlineKeyboardMarkup(rows))


@require_screen(ADMIN_USERS_SCREEN)
async def user_view(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    chat_id = query.from_user.id
    user_id = query.data.replace("admin_user_", "")
    session = await get_session(context, chat_id)
    try:
        user = await context.application.bot_data["user_service"].get_user(session, user_id)
    except ApiError as exc:
        await report_failure(context, chat_id, exc, "Erreur lors du chargement de l'utilisateur")
        return
    text = (
        f"👤 {user.full_name or '—'}\n"
        f"Email : {user.email or '—'}\n"
        f"Rôle : {user.role.value}\n"
        f"Actif : {'Oui' if user.is_active else 'Non'}\n"
        f"Inscrit le : {format_datetime(user.created_at)}"
    )
    await query.edit_message_text(text, reply_markup=back_keyboard("admin_users_1"))


# --- export --------------------------------------------------------------


@require_screen(ADMIN_RESERVATIONS_SCREEN)
async def export_reservations(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    chat_id = query.from_user.id
    session = await get_session(context, chat_id)
    try:
        reservations = await context.application.bot_data["reservation_service"].list_all(session)
    except ApiError as exc:
        await report_failure(context, chat_id, exc, "Erreur lors de l'export des réservations")
        return
    buffer = reservations_workbook(reservations)
    await context.bot.send_document(
        chat_id=chat_id,
        document=buffer,
        filename="reservations.xlsx",
        caption="Export des réservations",
    )
    await query.edit_message_text("Export envoyé", reply_markup=admin_panel_kb())
    logger.info("Admin chat_id=%s exported %s reservations", chat_id, len(reservations))


def setup_handlers(application):
    text_input = filters.TEXT & ~filters.COMMAND
    conv = ConversationHandler(
        entry_points=[
            CallbackQueryHandler(add_event_start, pattern="^admin_add_event$"),
            CallbackQueryHandler(edit_event_start, pattern="^admin_evedit_.*$"),
        ],
        states={
            Conversation.EVENT_TITLE: [MessageHandler(text_input, add_event_title)],
            Conversation.EVENT_DESCRIPTION: [MessageHandler(text_input, add_event_description)],
            Conversation.EVENT_DATE: [MessageHandler(text_input, add_event_date)],
            Conversation.EVENT_LOCATION: [MessageHandler(text_input, add_event_location)],
            Conversation.EVENT_SEATS: [MessageHandler(text_input, add_event_seats)],
            Conversation.EDIT_EVENT_VALUE: [MessageHandler(text_input, edit_event_value)],
        },
        fallbacks=[CommandHandler("cancel", admin_cancel)],
        per_user=True,
    )
    event_filters = "|".join(value for value, _ in EVENT_FILTERS)
    reservation_filters = "|".join(value for value, _ in RESERVATION_FILTERS)
    application.add_handler(conv)
    application.add_handler(CommandHandler("admin", admin_entry))
    application.add_handler(CallbackQueryHandler(admin_panel, pattern="^admin_panel$"))
    application.add_handler(CallbackQueryHandler(dashboard, pattern="^admin_dashboard$"))
    application.add_handler(CallbackQueryHandler(events_list, pattern=rf"^admin_events_({event_filters})_\d+$"))
    application.add_handler(CallbackQueryHandler(event_view, pattern="^admin_ev_.*$"))
    application.add_handler(CallbackQueryHandler(event_status, pattern="^admin_evstatus_.*$"))
    application.add_handler(CallbackQueryHandler(event_delete_confirm, pattern="^admin_evdel_.*$"))
    application.add_handler(CallbackQueryHandler(event_delete_go, pattern="^admin_evdelgo_.*$"))
    application.add_handler(CallbackQueryHandler(event_reservations, pattern="^admin_evres_.*$"))
    application.add_handler(CallbackQueryHandler(reservations_list, pattern=rf"^admin_res_({reservation_filters})_\d+$"))
    application.add_handler(CallbackQueryHandler(reservation_view, pattern="^admin_rv_.*$"))
    application.add_handler(CallbackQueryHandler(reservation_action_prompt, pattern="^admin_ract_.*$"))
    application.add_handler(CallbackQueryHandler(reservation_action_go, pattern="^admin_rgo_.*$"))
    application.add_handler(CallbackQueryHandler(users_list, pattern=r"^admin_users_\d+$"))
    application.add_handler(CallbackQueryHandler(user_view, pattern="^admin_user_.*$"))
    application.add_handler(CallbackQueryHandler(export_reservations, pattern="^admin_export_res$"))
