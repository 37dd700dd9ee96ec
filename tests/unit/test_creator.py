"""Challenge creator permissions."""

from greenquest.challenges.creator import SystemCreator, UserCreator, can_manage


class TestCanManage:

    def test_system_manages_system(self):
        assert can_manage(SystemCreator(), SystemCreator())

    def test_user_cannot_manage_system(self):
        assert not can_manage(SystemCreator(), UserCreator(1))

    def test_owner_manages_own(self):
        assert can_manage(UserCreator(7), UserCreator(7))

    def test_other_user_cannot_manage(self):
        assert not can_manage(UserCreator(7), UserCreator(8))

    def test_system_cannot_manage_user_challenge(self):
        assert not can_manage(UserCreator(7), SystemCreator())
