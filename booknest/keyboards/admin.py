from telegram import InlineKeyboardButton, InlineKeyboardMarkup


def admin_panel_kb():
    return InlineKeyboardMarkup(
        [
            [InlineKeyboardButton("📊 Tableau de bord", callback_data="admin_dashboard")],
            [InlineKeyboardButton("📅 Événements", callback_data="admin_events_ALL_1")],
            [InlineKeyboardButton("➕ Créer un événement", callback_data="admin_add_event")],
            [InlineKeyboardButton("🎟 Réservations", callback_data="admin_res_ALL_1")],
            [InlineKeyboardButton("👥 Utilisateurs", callback_data="admin_users_1")],
            [InlineKeyboardButton("📤 Export des réservations", callback_data="admin_export_res")],
        ]
    )


def confirm_keyboard(ok_cb: str, cancel_cb: str, ok_text: str = "✅ Oui"):
    return InlineKeyboardMarkup(
        [
            [InlineKeyboardButton(ok_text, callback_data=ok_cb)],
            [InlineKeyboardButton("❌ Annuler", callback_data=cancel_cb)],
        ]
    )


def back_keyboard(cb: str = "admin_panel", text: str = "⬅️ Retour") -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([[InlineKeyboardButton(text, callback_data=cb)]])
