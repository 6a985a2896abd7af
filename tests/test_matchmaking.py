"""
test_matchmaking.py - Тесты подбора пары и запросов в чат
"""
import pytest

from database.models import Account, OnlineUser, REQUEST_BLIND_DATE
from services.errors import NoMatchFound
from services.matchmaking import is_compatible, select_match


def account():
    return Account(name='Геймер', balance=0, rating=1500, games=['CS2', 'Valorant'])


class TestSelectMatch:

    def test_compatibility(self):
        assert is_compatible(account(), OnlineUser(id=1, name='A', rating=1800, game='CS2'))
        assert not is_compatible(account(), OnlineUser(id=2, name='B', rating=1801, game='CS2'))
        assert not is_compatible(account(), OnlineUser(id=3, name='C', rating=1500, game='Dota 2'))

    def test_closest_rating_wins(self):
        candidates = [
            OnlineUser(id=1, name='A', rating=1700, game='CS2'),
            OnlineUser(id=2, name='B', rating=1450, game='Valorant'),
        ]

        assert select_match(account(), candidates).id == 2

    def test_tie_broken_by_id(self):
        candidates = [
            OnlineUser(id=5, name='A', rating=1600, game='CS2'),
            OnlineUser(id=3, name='B', rating=1400, game='CS2'),
        ]

        assert select_match(account(), candidates).id == 3

    def test_no_match(self):
        with pytest.raises(NoMatchFound):
            select_match(account(), [OnlineUser(id=1, name='A', rating=2500, game='CS2')])


class TestChatRequests:
    """Запросы через координатор"""

    def test_send_and_duplicate(self, coordinator):
        assert coordinator.send_chat_request(1).success

        result = coordinator.send_chat_request(1)

        assert result.code == 'duplicate_request'
        assert len(coordinator.list_chat_requests()) == 1

    def test_unknown_user(self, coordinator):
        assert coordinator.send_chat_request(99).code == 'user_not_found'

    def test_blind_date(self, coordinator):
        result = coordinator.find_match()

        assert result.success
        assert result.data['pair_id'] == 2
        assert result.data['discount'] == 50
        assert result.data['duration'] == 3
        [request] = coordinator.list_chat_requests()
        assert request.kind == REQUEST_BLIND_DATE
        assert coordinator.get_account().notifications['blind_date']

    def test_blind_date_skips_pending(self, coordinator):
        coordinator.find_match()

        assert coordinator.find_match().code == 'no_match'

    def test_dead_hour_toggle(self, coordinator):
        assert coordinator.toggle_dead_hour_notifications().data['enabled'] is True
        assert coordinator.toggle_dead_hour_notifications().data['enabled'] is False
