"""
Tests for the conversational booking assistant.
"""

import pendulum
import pytest

from barbershop.adapters.memory_store import MemoryStore
from barbershop.domain.exceptions import SlotTakenError, StoreError
from barbershop.domain.models import NewAppointment, TimeSlot
from barbershop.domain.slot_generator import SlotGenerator
from barbershop.services.booking import BookingService
from barbershop.services.chat_agent import (
    BookingFailed,
    ChatAgent,
    ChatContext,
    ChatEnvironment,
    ChatState,
    SlotsLoaded,
    UserInput,
    parse_date_input,
    parse_time_input,
    transition,
)

TZ = "America/Sao_Paulo"
TODAY = pendulum.date(2024, 11, 25)  # Monday
NOW = pendulum.datetime(2024, 11, 25, 8, 0, tz=TZ)
TOMORROW = TODAY.add(days=1)


class FixedClockBookingService(BookingService):
    """BookingService frozen at NOW that counts slot lookups."""

    def __init__(self, store, fail_slots=None):
        super().__init__(store, store, SlotGenerator(timezone=TZ))
        self.slot_lookups = 0
        self.fail_slots = fail_slots

    def now(self):
        return NOW

    def available_slots(self, barber_id, day, now=None):
        self.slot_lookups += 1
        if self.fail_slots is not None:
            raise self.fail_slots
        return super().available_slots(barber_id, day, now=now)


class RacingStore(MemoryStore):
    """Another client books the same slot just before our insert."""

    def create_appointment(self, appointment):
        super().create_appointment(
            NewAppointment(
                barber_id=appointment.barber_id,
                date=appointment.date,
                time=appointment.time,
                client_name="Outro Cliente",
                client_phone="11977776666",
            )
        )
        return super().create_appointment(appointment)


def _agent(store=None, **kwargs):
    store = store or MemoryStore(today=TODAY)
    service = FixedClockBookingService(store, **kwargs)
    agent = ChatAgent(service)
    agent.start()
    return agent, service, store


def _to_confirm(agent, barber="João", day="amanhã", time="09:45"):
    agent.send("quero agendar")
    agent.send(barber)
    agent.send(day)
    agent.send(time)
    agent.send("Ana Souza")
    return agent.send("(11) 98888-7777")


class TestInputParsing:
    """Tests for date and time understanding."""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("hoje", TODAY),
            ("Amanhã", TOMORROW),
            ("amanha cedo", TOMORROW),
            ("segunda", pendulum.date(2024, 12, 2)),
            ("sexta-feira", pendulum.date(2024, 11, 29)),
            ("sábado", pendulum.date(2024, 11, 30)),
            ("25/12", pendulum.date(2024, 12, 25)),
            ("05/01/2025", pendulum.date(2025, 1, 5)),
            ("05/01", pendulum.date(2025, 1, 5)),
            ("25/11", pendulum.date(2024, 11, 25)),
        ],
    )
    def test_parse_date(self, text, expected):
        assert parse_date_input(text, TODAY) == expected

    @pytest.mark.parametrize("text", ["31/02", "quando der", ""])
    def test_unparseable_date(self, text):
        assert parse_date_input(text, TODAY) is None

    @pytest.mark.parametrize(
        "text, expected",
        [("14:30", "14:30"), ("14h", "14:00"), ("9:45", "09:45"), ("às 10:30", "10:30"), ("9", "09:00")],
    )
    def test_parse_time(self, text, expected):
        assert parse_time_input(text) == expected

    def test_unparseable_time(self):
        assert parse_time_input("de tarde") is None


class TestTransitions:
    """Tests for the pure transition function."""

    @pytest.fixture
    def env(self):
        return ChatEnvironment(barbers=tuple(MemoryStore(today=TODAY).list_barbers()), today=TODAY)

    def test_greeting_needs_booking_intent(self, env):
        step = transition(ChatState.GREETING, ChatContext(), UserInput("oi"), env)

        assert step.state == ChatState.GREETING
        assert "agendar" in step.messages[0].content

    def test_greeting_lists_barbers(self, env):
        step = transition(ChatState.GREETING, ChatContext(), UserInput("Sim, agendar"), env)

        assert step.state == ChatState.SELECT_BARBER
        assert step.messages[0].options == ("Carlos Santos", "João Silva", "Miguel Oliveira")

    def test_greeting_without_barbers(self):
        env = ChatEnvironment(barbers=(), today=TODAY)

        step = transition(ChatState.GREETING, ChatContext(), UserInput("agendar"), env)

        assert step.state == ChatState.GREETING
        assert "não encontrei barbeiros" in step.messages[0].content

    def test_barber_by_option_number(self, env):
        step = transition(ChatState.SELECT_BARBER, ChatContext(), UserInput("1"), env)

        assert step.state == ChatState.SELECT_DATE
        assert step.context.barber_id == "2"

    def test_unknown_barber(self, env):
        step = transition(ChatState.SELECT_BARBER, ChatContext(), UserInput("Zé"), env)

        assert step.state == ChatState.SELECT_BARBER

    def test_past_date_is_rejected(self, env):
        step = transition(ChatState.SELECT_DATE, ChatContext(barber_id="1"), UserInput("01/11/2024"), env)

        assert step.state == ChatState.SELECT_DATE
        assert "já passou" in step.messages[0].content

    def test_non_work_day_is_rejected(self, env):
        """Carlos does not work on Sundays."""
        step = transition(ChatState.SELECT_DATE, ChatContext(barber_id="2"), UserInput("domingo"), env)

        assert step.state == ChatState.SELECT_DATE
        assert "não trabalha" in step.messages[0].content

    def test_valid_date_moves_to_time_selection(self, env):
        step = transition(ChatState.SELECT_DATE, ChatContext(barber_id="1"), UserInput("amanhã"), env)

        assert step.state == ChatState.SELECT_TIME
        assert step.context.day == TOMORROW
        assert step.messages == ()

    def test_slots_loaded_offers_first_available(self, env):
        slots = tuple(
            TimeSlot(time=t, available=t != "09:45")
            for t in ["09:00", "09:45", "10:30", "11:15", "13:30", "14:15", "15:00",
                      "15:45", "16:30", "17:15"]
        )
        context = ChatContext(barber_id="1", day=TOMORROW)

        step = transition(ChatState.SELECT_TIME, context, SlotsLoaded(slots), env)

        assert step.state == ChatState.SELECT_TIME
        assert step.context.offered_times == (
            "09:00", "10:30", "11:15", "13:30", "14:15", "15:00", "15:45", "16:30",
        )

    def test_no_free_slots_goes_back_to_date(self, env):
        slots = (TimeSlot("09:00", False), TimeSlot("09:45", False))

        step = transition(
            ChatState.SELECT_TIME, ChatContext(barber_id="1", day=TODAY), SlotsLoaded(slots), env
        )

        assert step.state == ChatState.SELECT_DATE
        assert "não tenho horários livres" in step.messages[0].content

    def test_time_must_be_offered(self, env):
        context = ChatContext(barber_id="1", day=TOMORROW, offered_times=("09:00", "09:45"))

        step = transition(ChatState.SELECT_TIME, context, UserInput("12:00"), env)

        assert step.state == ChatState.SELECT_TIME
        assert step.messages[0].options == ("09:00", "09:45")

    def test_short_phone_is_rejected(self, env):
        step = transition(ChatState.COLLECT_PHONE, ChatContext(), UserInput("1234"), env)

        assert step.state == ChatState.COLLECT_PHONE

    def test_cancel_at_confirmation(self, env):
        context = ChatContext(barber_id="1", day=TOMORROW, time="09:00")

        step = transition(ChatState.CONFIRM, context, UserInput("Cancelar"), env)

        assert step.state == ChatState.GREETING
        assert step.context == ChatContext()
        assert step.messages[-1].options == ("Agendar Corte",)

    def test_conflict_while_saving_returns_to_time_selection(self, env):
        context = ChatContext(barber_id="1", day=TOMORROW, time="09:00", offered_times=("09:00",))

        step = transition(ChatState.SAVING, context, BookingFailed(SlotTakenError("taken")), env)

        assert step.state == ChatState.SELECT_TIME
        assert step.context.time is None
        assert "acabou de ser reservado" in step.messages[0].content

    def test_other_failure_while_saving_is_an_error(self, env):
        step = transition(ChatState.SAVING, ChatContext(), BookingFailed(StoreError("down")), env)

        assert step.state == ChatState.ERROR

    def test_any_input_after_error_restarts(self, env):
        step = transition(ChatState.ERROR, ChatContext(barber_id="1"), UserInput("ok"), env)

        assert step.state == ChatState.GREETING
        assert step.context == ChatContext()


class TestChatAgent:
    """Tests for the dialogue driver against the demo store."""

    def test_start_sends_welcome(self):
        agent, _, _ = _agent()

        assert agent.messages[0].options == ("Sim, agendar",)
        assert agent.state == ChatState.GREETING

    def test_full_booking(self):
        agent, _, store = _agent()

        agent.send("quero agendar")
        agent.send("João")
        replies = agent.send("amanhã")

        assert agent.state == ChatState.SELECT_TIME
        assert replies[-1].options == (
            "09:00", "09:45", "10:30", "11:15", "13:30", "14:15", "15:00", "15:45",
        )

        agent.send("09:45")
        agent.send("Ana Souza")
        replies = agent.send("(11) 98888-7777")

        assert agent.state == ChatState.CONFIRM
        assert "26/11/2024" in replies[0].content
        assert "João Silva" in replies[0].content

        replies = agent.send("Sim, confirmar")

        assert agent.state == ChatState.SUCCESS
        assert "confirmado" in replies[0].content
        booked = store.list_appointments("1", TOMORROW)
        assert [(a.time, a.client_phone) for a in booked] == [("09:45", "11988887777")]

    def test_today_skips_booked_and_break_slots(self):
        agent, _, _ = _agent()
        agent.send("agendar")
        agent.send("João")

        agent.send("hoje")

        assert agent.context.offered_times == (
            "09:00", "09:45", "11:15", "13:30", "15:00", "15:45", "16:30", "17:15",
        )

    def test_invalid_time_does_not_reload_slots(self):
        agent, service, _ = _agent()
        agent.send("agendar")
        agent.send("João")
        agent.send("amanhã")
        assert service.slot_lookups == 1

        agent.send("meio-dia")
        agent.send("12:00")

        assert agent.state == ChatState.SELECT_TIME
        assert service.slot_lookups == 1

    def test_slot_taken_before_confirmation(self):
        """Someone books the chosen time while the customer is typing."""
        agent, _, store = _agent()
        _to_confirm(agent)
        store.create_appointment(
            NewAppointment(
                barber_id="1",
                date=TOMORROW,
                time="09:45",
                client_name="Outro Cliente",
                client_phone="11977776666",
            )
        )

        replies = agent.send("sim")

        assert agent.state == ChatState.SELECT_TIME
        assert "acabou de ser reservado" in replies[0].content
        assert "09:45" not in agent.context.offered_times
        assert agent.context.offered_times[0] == "09:00"

    def test_lost_race_at_insert(self):
        agent, _, store = _agent(store=RacingStore(today=TODAY))
        _to_confirm(agent)

        replies = agent.send("Sim, confirmar")

        assert agent.state == ChatState.SELECT_TIME
        assert "acabou de ser reservado" in replies[0].content
        booked = store.list_appointments("1", TOMORROW)
        assert [a.client_name for a in booked] == ["Outro Cliente"]

    def test_slot_loading_failure(self):
        agent, _, _ = _agent(fail_slots=StoreError("connection refused"))
        agent.send("agendar")
        agent.send("João")

        replies = agent.send("amanhã")

        assert agent.state == ChatState.ERROR
        assert "Não consegui carregar os horários" in replies[0].content

        agent.send("ok")
        assert agent.state == ChatState.GREETING

    def test_restart(self):
        agent, _, _ = _agent()
        agent.send("agendar")
        agent.send("João")

        agent.restart()

        assert agent.state == ChatState.GREETING
        assert agent.context == ChatContext()
