"""
test_handlers.py - Тексты обработчиков посетителя
"""
from handlers.user_handlers import NO_BOOKINGS_TEXT, bookings_header


class TestBookingsList:
    """Список броней показывает брони всего клуба"""

    def test_header_mentions_shared_account(self):
        header = bookings_header(3)

        assert "клуба" in header
        assert "общий аккаунт" in header
        assert header.endswith("3")

    def test_empty_text_is_club_wide(self):
        assert "В клубе" in NO_BOOKINGS_TEXT
