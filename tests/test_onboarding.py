"""
Tests for the onboarding flow running on the dialog engine.

Each test drives a user through the state table with the in-memory gateway
and stores, then checks what was sent and what was persisted.
"""
import pytest

from channels.memory_gateway import InMemoryGateway
from context.dialog_context import DialogContext
from context.onboarding import (
    DialogState, ONBOARDING_FLOW, build_college_list, create_onboarding_engine, is_valid_name,
)
from models.schemas import ListMessage, MessageType, OTHER_COLLEGE
from templates.replies import REPLIES_EN
from tests.conftest import COLLEGES, USER, make_message


async def send(engine, session_id, ctx):
    engine.continue_session(session_id, ctx)
    await engine.join(session_id)


@pytest.fixture
def engine():
    return create_onboarding_engine(max_transitions=16)


# ──────────────────────────────────────────────────────────────
#  Name validation
# ──────────────────────────────────────────────────────────────

class TestNameValidation:
    @pytest.mark.parametrize("name", ["Asha Rao", "Jo", "R2D2", "Zoë", "Ravi 2nd", "  Asha  "])
    def test_valid(self, name):
        assert is_valid_name(name)

    @pytest.mark.parametrize("name", ["", "A", "!!!", "12345", "_a", "..."])
    def test_invalid(self, name):
        assert not is_valid_name(name)


class TestFlowTable:
    def test_every_state_has_a_handler(self):
        assert set(ONBOARDING_FLOW) == set(DialogState)

    def test_college_list_rows(self, profiles):
        listing = build_college_list(profiles.colleges(), "en")
        assert isinstance(listing, ListMessage)
        assert listing.row_titles == [*COLLEGES, OTHER_COLLEGE]
        assert listing.button_text == REPLIES_EN["college"]["button_text"]


# ──────────────────────────────────────────────────────────────
#  New users
# ──────────────────────────────────────────────────────────────

class TestNewUser:
    @pytest.mark.asyncio
    async def test_first_message_greets_and_asks_name(self, engine, gateway, context_factory):
        session_id = engine.create(context_factory("hi"))
        await engine.join(session_id)

        assert gateway.texts(USER) == [REPLIES_EN["greeting"], REPLIES_EN["prompt"]["name"]]
        assert engine.get_session(session_id).state == DialogState.REGISTER_NAME

    @pytest.mark.asyncio
    async def test_valid_name_is_persisted_and_college_list_sent(
        self, engine, gateway, users_store, context_factory,
    ):
        session_id = engine.create(context_factory("hi"))
        await engine.join(session_id)
        await send(engine, session_id, context_factory("Asha Rao"))

        assert users_store.persisted[USER]["name"] == "Asha Rao"
        texts = gateway.texts(USER)
        assert texts[-1] == REPLIES_EN["prompt"]["college"]("Asha Rao")
        lists = gateway.lists(USER)
        assert len(lists) == 1
        assert lists[0].row_titles[-1] == OTHER_COLLEGE
        assert engine.get_session(session_id).state == DialogState.REGISTER_COLLEGE

    @pytest.mark.asyncio
    async def test_invalid_name_apologises_and_asks_again(
        self, engine, gateway, users_store, context_factory,
    ):
        session_id = engine.create(context_factory("hi"))
        await engine.join(session_id)
        await send(engine, session_id, context_factory("!!!"))

        assert gateway.texts(USER)[-2:] == [REPLIES_EN["prompt"]["error"], REPLIES_EN["prompt"]["name"]]
        assert USER not in users_store
        assert engine.get_session(session_id).state == DialogState.REGISTER_NAME

    @pytest.mark.asyncio
    async def test_full_registration_from_list(
        self, engine, gateway, users_store, context_factory,
    ):
        session_id = engine.create(context_factory("hi"))
        await engine.join(session_id)
        await send(engine, session_id, context_factory("Asha Rao"))
        await send(engine, session_id,
                   context_factory("Miranda House", type=MessageType.LIST_RESPONSE.value))

        assert users_store.persisted[USER] == {"name": "Asha Rao", "college": "Miranda House"}
        summary = gateway.texts(USER)[-1]
        assert "Name: Asha Rao" in summary
        assert "College: Miranda House" in summary
        assert engine.get_session(session_id).state == DialogState.IDLE

    @pytest.mark.asyncio
    async def test_other_college_asks_for_name_and_registers_it(
        self, engine, gateway, profiles, globals_store, users_store, context_factory,
    ):
        session_id = engine.create(context_factory("hi"))
        await engine.join(session_id)
        await send(engine, session_id, context_factory("Asha Rao"))
        await send(engine, session_id,
                   context_factory(OTHER_COLLEGE, type=MessageType.LIST_RESPONSE.value))

        assert gateway.texts(USER)[-1] == REPLIES_EN["prompt"]["college_name"]
        assert engine.get_session(session_id).state == DialogState.REGISTER_COLLEGE

        await send(engine, session_id, context_factory("Ramjas College"))

        assert profiles.colleges() == [*COLLEGES, "Ramjas College", OTHER_COLLEGE]
        assert globals_store.persisted["colleges"][-2:] == ["Ramjas College", OTHER_COLLEGE]
        assert users_store.persisted[USER]["college"] == "Ramjas College"
        assert engine.get_session(session_id).state == DialogState.IDLE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("typed", [OTHER_COLLEGE, "  other "])
    async def test_other_typed_as_text_asks_for_name(
        self, engine, gateway, profiles, context_factory, typed,
    ):
        session_id = engine.create(context_factory("hi"))
        await engine.join(session_id)
        await send(engine, session_id, context_factory("Asha Rao"))
        await send(engine, session_id, context_factory(typed))

        assert gateway.texts(USER)[-1] == REPLIES_EN["prompt"]["college_name"]
        assert profiles.get_profile(USER).college is None
        assert profiles.colleges().count(OTHER_COLLEGE) == 1
        assert engine.get_session(session_id).state == DialogState.REGISTER_COLLEGE

    @pytest.mark.asyncio
    async def test_known_college_typed_is_not_duplicated(
        self, engine, profiles, context_factory,
    ):
        session_id = engine.create(context_factory("hi"))
        await engine.join(session_id)
        await send(engine, session_id, context_factory("Asha Rao"))
        await send(engine, session_id, context_factory("Miranda House"))

        assert profiles.colleges().count("Miranda House") == 1
        assert profiles.get_profile(USER).college == "Miranda House"

    @pytest.mark.asyncio
    async def test_empty_college_text_is_wrong_input(
        self, engine, gateway, profiles, context_factory,
    ):
        session_id = engine.create(context_factory("hi"))
        await engine.join(session_id)
        await send(engine, session_id, context_factory("Asha Rao"))
        await send(engine, session_id, context_factory("   "))

        assert REPLIES_EN["prompt"]["error"] in gateway.texts(USER)
        assert len(gateway.lists(USER)) == 2
        assert profiles.get_profile(USER).college is None
        assert engine.get_session(session_id).state == DialogState.REGISTER_COLLEGE

    @pytest.mark.asyncio
    async def test_unexpected_message_type_is_wrong_input(
        self, engine, gateway, profiles, context_factory,
    ):
        session_id = engine.create(context_factory("hi"))
        await engine.join(session_id)
        await send(engine, session_id, context_factory("Asha Rao"))
        await send(engine, session_id,
                   context_factory("caption", type=MessageType.IMAGE.value))

        assert REPLIES_EN["prompt"]["error"] in gateway.texts(USER)
        assert profiles.get_profile(USER).college is None
        assert engine.get_session(session_id).state == DialogState.REGISTER_COLLEGE


# ──────────────────────────────────────────────────────────────
#  Returning users
# ──────────────────────────────────────────────────────────────

class TestReturningUser:
    @pytest.mark.asyncio
    async def test_welcome_back_then_details(self, engine, gateway, users_store, context_factory):
        users_store.set(USER, {"language": "en", "name": "Asha Rao", "college": "Miranda House"})

        session_id = engine.create(context_factory("hello again"))
        await engine.join(session_id)

        texts = gateway.texts(USER)
        assert texts[0] == "Hi Asha Rao! Welcome back!"
        assert "College: Miranda House" in texts[1]
        assert engine.get_session(session_id).state == DialogState.IDLE

    @pytest.mark.asyncio
    async def test_idle_stays_idle_silently(self, engine, gateway, users_store, context_factory):
        users_store.set(USER, {"name": "Asha Rao", "college": "Miranda House"})
        session_id = engine.create(context_factory("hello"))
        await engine.join(session_id)
        sent = len(gateway.sent)

        await send(engine, session_id, context_factory("anything"))

        assert len(gateway.sent) == sent
        assert engine.get_session(session_id).state == DialogState.IDLE


# ──────────────────────────────────────────────────────────────
#  Delivery failures
# ──────────────────────────────────────────────────────────────

class TestDeliveryFailure:
    @pytest.mark.asyncio
    async def test_rejected_send_is_contained(self, engine, profiles):
        gateway = InMemoryGateway(reject=[USER])
        message = make_message("hi")
        ctx = DialogContext(
            gateway=gateway, profiles=profiles, message=message,
            user=profiles.get_profile(USER), user_id=USER, body=message.body,
        )

        session_id = engine.create(ctx)
        await engine.join(session_id)

        session = engine.get_session(session_id)
        assert session.failed_inputs == 1
        assert session.state == DialogState.INITIAL
        assert session.active is False
