# tests/conftest.py
import pytest
from django.contrib.auth import get_user_model


@pytest.fixture
def user_factory(db):
    """
    Создаёт пользователя с заданным username/паролем.
    Возвращает объект user.
    """
    def _make_user(username: str = "merchant", password: str = "pass12345", **kwargs):
        User = get_user_model()
        return User.objects.create_user(username=username, password=password, **kwargs)

    return _make_user


@pytest.fixture
def api_client(client, db):
    """
    Django test client (как обычно), но оставляем именование "api_client",
    чтобы было понятно, что это клиент для HTTP-запросов к API.
    """
    return client


@pytest.fixture
def auth_client(api_client, user_factory):
    """
    Возвращает (client, user) с активной сессией.
    Аутентификация как в проде — SessionAuthentication.
    """
    def _login(username: str = "merchant", password: str = "pass12345", **user_kwargs):
        user = user_factory(username=username, password=password, **user_kwargs)
        api_client.force_login(user)
        return api_client, user

    return _login
