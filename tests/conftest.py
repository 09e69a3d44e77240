"""Shared test fixtures for the Panel Bot."""
import pytest

from channels.memory_gateway import InMemoryGateway
from config.settings import BotConfig, DeleterConfig, DialogConfig, Settings, StoreConfig
from context.dialog_context import DialogContext
from database.repository import ProfileRepository
from database.store_memory import InMemoryJsonStore
from models.schemas import ChatMessage, MessageType

USER = "919800000001@c.us"
OTHER_USER = "919800000002@c.us"
GROUP = "120363000000000001@g.us"

COLLEGES = ["Hansraj College", "Miranda House"]


def make_message(
    body: str = "hi",
    sender: str = USER,
    type: str = MessageType.CHAT.value,
    **fields,
) -> ChatMessage:
    return ChatMessage(body=body, sender=sender, to="server@c.us", type=type, **fields)


@pytest.fixture
def gateway() -> InMemoryGateway:
    return InMemoryGateway()


@pytest.fixture
def users_store() -> InMemoryJsonStore:
    return InMemoryJsonStore("users")


@pytest.fixture
def globals_store() -> InMemoryJsonStore:
    return InMemoryJsonStore("globals")


@pytest.fixture
def profiles(users_store, globals_store) -> ProfileRepository:
    return ProfileRepository(users_store, globals_store, default_colleges=COLLEGES)


@pytest.fixture
def context_factory(gateway, profiles):
    """Build a DialogContext the way the router does."""
    def build(body: str = "hi", sender: str = USER, type: str = MessageType.CHAT.value, **fields):
        message = make_message(body, sender=sender, type=type, **fields)
        return DialogContext(
            gateway=gateway,
            profiles=profiles,
            message=message,
            user=profiles.get_profile(message.user_id),
            user_id=message.user_id,
            body=message.body,
        )
    return build


@pytest.fixture
def memory_settings() -> Settings:
    """Settings with in-memory stores and no background timer."""
    return Settings(
        app_name="PanelBotTest",
        bot=BotConfig(),
        store=StoreConfig(backend="memory", default_colleges=list(COLLEGES)),
        deleter=DeleterConfig(perform_auto_deletion=False, orphan_check_delay=0.01),
        dialog=DialogConfig(max_transitions=16),
    )
