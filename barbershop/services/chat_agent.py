"""
Conversational booking assistant.

The dialogue is an explicit state machine. ``transition`` is a pure function
of (state, context, event, environment) that returns the next state, the
updated context and the assistant messages to show. ``ChatAgent`` drives it
and performs the two side effects tied to entering a state:

* entering SELECT_TIME loads the slot grid and feeds ``SlotsLoaded``
* entering SAVING creates the appointment and feeds ``BookingSaved`` or
  ``BookingFailed``
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

import pendulum

from ..domain.date_utils import format_date_short, is_work_day, weekday_number
from ..domain.exceptions import BarbershopError, SlotTakenError, SlotUnavailableError
from ..domain.models import Appointment, Barber, TimeSlot
from ..domain.phone import normalize_phone
from .booking import MIN_PHONE_DIGITS, BookingService

logger = logging.getLogger(__name__)


class ChatState(str, Enum):
    GREETING = "greeting"
    SELECT_BARBER = "select_barber"
    SELECT_DATE = "select_date"
    SELECT_TIME = "select_time"
    COLLECT_NAME = "collect_name"
    COLLECT_PHONE = "collect_phone"
    CONFIRM = "confirm"
    SAVING = "saving"
    SUCCESS = "success"
    ERROR = "error"


# States whose entry triggers a side effect in the driver
EFFECT_STATES = (ChatState.SELECT_TIME, ChatState.SAVING)

BOOKING_KEYWORDS = ("agendar", "marcar", "corte")
CONFIRM_KEYWORDS = ("sim", "confirmar")

WEEKDAYS = {
    "domingo": 0,
    "segunda": 1,
    "terça": 2,
    "terca": 2,
    "quarta": 3,
    "quinta": 4,
    "sexta": 5,
    "sábado": 6,
    "sabado": 6,
}

TIME_PATTERN = re.compile(r"(\d{1,2})[:h]?(\d{2})?")
DATE_PATTERN = re.compile(r"\b(\d{1,2})/(\d{1,2})(?:/(\d{4}))?\b")


@dataclass(frozen=True)
class ChatMessage:
    role: str  # "user" or "assistant"
    content: str
    options: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ChatContext:
    """Booking details collected so far."""
    barber_id: Optional[str] = None
    day: Optional[date] = None
    time: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    offered_times: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ChatEnvironment:
    """Read-only data the transition function may consult."""
    barbers: Sequence[Barber]
    today: date
    max_time_options: int = 8

    def barber(self, barber_id: Optional[str]) -> Optional[Barber]:
        for barber in self.barbers:
            if barber.id == barber_id:
                return barber
        return None


@dataclass(frozen=True)
class UserInput:
    text: str


@dataclass(frozen=True)
class SlotsLoaded:
    slots: Tuple[TimeSlot, ...]


@dataclass(frozen=True)
class BookingSaved:
    appointment: Appointment


@dataclass(frozen=True)
class BookingFailed:
    error: Exception


ChatEvent = Union[UserInput, SlotsLoaded, BookingSaved, BookingFailed]


@dataclass(frozen=True)
class Step:
    state: ChatState
    context: ChatContext
    messages: Tuple[ChatMessage, ...] = field(default_factory=tuple)


def say(content: str, options: Sequence[str] = ()) -> ChatMessage:
    return ChatMessage(role="assistant", content=content, options=tuple(options))


WELCOME = say(
    "Olá! Bem-vindo à barbearia. Sou seu assistente virtual. Gostaria de agendar um horário?",
    ["Sim, agendar"],
)


def restart_step() -> Step:
    return Step(
        ChatState.GREETING,
        ChatContext(),
        (say("Como posso ajudar agora?", ["Agendar Corte"]),),
    )


# ============= INPUT PARSING =============

def parse_date_input(text: str, today: date) -> Optional[date]:
    """
    Understand ``hoje``, ``amanhã``, weekday names (next occurrence after
    today) and ``DD/MM[/YYYY]``; a ``DD/MM`` already past this year is read
    as next year. Returns None when nothing matches.
    """
    lowered = text.strip().lower()
    base = pendulum.date(today.year, today.month, today.day)

    if "amanhã" in lowered or "amanha" in lowered:
        return base.add(days=1)
    if "hoje" in lowered:
        return base

    for name, weekday in WEEKDAYS.items():
        if name in lowered:
            delta = (weekday - weekday_number(base)) % 7 or 7
            return base.add(days=delta)

    match = DATE_PATTERN.search(lowered)
    if match:
        day, month, year = match.groups()
        try:
            if year:
                return pendulum.date(int(year), int(month), int(day))
            parsed = pendulum.date(base.year, int(month), int(day))
            # Past DD/MM rolls over to next year
            if parsed < base:
                parsed = pendulum.date(base.year + 1, int(month), int(day))
            return parsed
        except ValueError:
            return None

    return None


def parse_time_input(text: str) -> Optional[str]:
    """Extract ``HH:mm`` from inputs like ``14:30``, ``14h``, ``9``."""
    match = TIME_PATTERN.search(text)
    if not match:
        return None

    hour = match.group(1).zfill(2)
    minute = (match.group(2) or "00").zfill(2)
    return f"{hour}:{minute}"


def match_barber(text: str, barbers: Sequence[Barber]) -> Optional[Barber]:
    """Pick a barber by option number or by a loose name match."""
    wanted = text.strip().lower()
    if not wanted:
        return None

    if wanted.isdigit():
        index = int(wanted) - 1
        return barbers[index] if 0 <= index < len(barbers) else None

    for barber in barbers:
        name = barber.name.lower()
        if name in wanted or wanted in name:
            return barber
    return None


# ============= TRANSITIONS =============

def transition(
    state: ChatState,
    context: ChatContext,
    event: ChatEvent,
    env: ChatEnvironment,
) -> Step:
    """
    Compute the next step of the dialogue. Pure: no I/O, no clock.
    """
    if isinstance(event, UserInput):
        handler = _INPUT_HANDLERS.get(state, _on_restart)
        return handler(context, event.text, env)

    if isinstance(event, SlotsLoaded) and state == ChatState.SELECT_TIME:
        return _on_slots_loaded(context, event.slots, env)

    if isinstance(event, BookingSaved) and state == ChatState.SAVING:
        return Step(
            ChatState.SUCCESS,
            context,
            (
                say("Agendamento confirmado com sucesso! 🎉 Te esperamos lá."),
                say("Gostaria de realizar outro agendamento?", ["Novo Agendamento"]),
            ),
        )

    if isinstance(event, BookingFailed):
        return _on_failure(state, context, event.error)

    # Stale or unexpected event for this state
    return Step(state, context)


def _on_greeting(context: ChatContext, text: str, env: ChatEnvironment) -> Step:
    lowered = text.lower()
    if not any(keyword in lowered for keyword in BOOKING_KEYWORDS):
        return Step(
            ChatState.GREETING,
            context,
            (say(
                "Olá! Sou o assistente da barbearia. Posso ajudar você a agendar um horário. "
                "Digite 'agendar' para começar."
            ),),
        )

    if not env.barbers:
        return Step(
            ChatState.GREETING,
            context,
            (say("Desculpe, não encontrei barbeiros disponíveis no momento."),),
        )

    return Step(
        ChatState.SELECT_BARBER,
        context,
        (say("Claro! Com qual barbeiro você gostaria de cortar?", [b.name for b in env.barbers]),),
    )


def _on_select_barber(context: ChatContext, text: str, env: ChatEnvironment) -> Step:
    barber = match_barber(text, env.barbers)
    if barber is None:
        return Step(
            ChatState.SELECT_BARBER,
            context,
            (say("Não encontrei esse barbeiro. Por favor escolha um da lista:",
                 [b.name for b in env.barbers]),),
        )

    return Step(
        ChatState.SELECT_DATE,
        replace(context, barber_id=barber.id),
        (say(
            f"Ótima escolha! Para quando você gostaria de agendar com {barber.name}? "
            "(Ex: Hoje, Amanhã, Segunda)"
        ),),
    )


def _on_select_date(context: ChatContext, text: str, env: ChatEnvironment) -> Step:
    day = parse_date_input(text, env.today)
    if day is None:
        return Step(
            ChatState.SELECT_DATE,
            context,
            (say("Não entendi a data. Tente 'Hoje', 'Amanhã', um dia da semana ou DD/MM."),),
        )

    if day < env.today:
        return Step(
            ChatState.SELECT_DATE,
            context,
            (say("Essa data já passou. Escolha outra data."),),
        )

    barber = env.barber(context.barber_id)
    if barber is not None and not is_work_day(day, barber.schedule.work_days):
        return Step(
            ChatState.SELECT_DATE,
            context,
            (say("Infelizmente esse barbeiro não trabalha nesse dia. Tente outra data."),),
        )

    # Slots are presented by the SELECT_TIME entry effect
    return Step(ChatState.SELECT_TIME, replace(context, day=day, time=None, offered_times=()))


def _on_slots_loaded(
    context: ChatContext,
    slots: Sequence[TimeSlot],
    env: ChatEnvironment,
) -> Step:
    offered = tuple(slot.time for slot in slots if slot.available)[: env.max_time_options]

    if not offered:
        return Step(
            ChatState.SELECT_DATE,
            replace(context, day=None, offered_times=()),
            (say("Poxa, não tenho horários livres para esse dia. Tente outra data."),),
        )

    return Step(
        ChatState.SELECT_TIME,
        replace(context, offered_times=offered),
        (say("Tenho estes horários livres:", offered),),
    )


def _on_select_time(context: ChatContext, text: str, env: ChatEnvironment) -> Step:
    time_string = parse_time_input(text)
    if time_string is None:
        return Step(
            ChatState.SELECT_TIME,
            context,
            (say("Não entendi o horário. Por favor use o formato HH:mm (ex: 14:30)"),),
        )

    if time_string not in context.offered_times:
        return Step(
            ChatState.SELECT_TIME,
            context,
            (say("Esse horário não está disponível. Escolha um destes:", context.offered_times),),
        )

    return Step(
        ChatState.COLLECT_NAME,
        replace(context, time=time_string),
        (say("Perfeito! Qual o seu nome completo?"),),
    )


def _on_collect_name(context: ChatContext, text: str, env: ChatEnvironment) -> Step:
    name = text.strip()
    if not name:
        return Step(ChatState.COLLECT_NAME, context, (say("Por favor, informe seu nome."),))

    return Step(
        ChatState.COLLECT_PHONE,
        replace(context, customer_name=name),
        (say("E qual seu telefone para contato? (apenas números)"),),
    )


def _on_collect_phone(context: ChatContext, text: str, env: ChatEnvironment) -> Step:
    phone = normalize_phone(text)
    if len(phone) < MIN_PHONE_DIGITS:
        return Step(
            ChatState.COLLECT_PHONE,
            context,
            (say("O telefone parece inválido. Digite novamente."),),
        )

    context = replace(context, customer_phone=phone)
    barber = env.barber(context.barber_id)
    summary = (
        "Confirma o agendamento?\n\n"
        f"📅 {format_date_short(context.day)}\n"
        f"⏰ {context.time}\n"
        f"💈 {barber.name if barber else context.barber_id}\n"
        f"👤 {context.customer_name}"
    )

    return Step(ChatState.CONFIRM, context, (say(summary, ["Sim, confirmar", "Cancelar"]),))


def _on_confirm(context: ChatContext, text: str, env: ChatEnvironment) -> Step:
    lowered = text.lower()
    if any(keyword in lowered for keyword in CONFIRM_KEYWORDS):
        # The booking itself is made by the SAVING entry effect
        return Step(ChatState.SAVING, context)

    restart = restart_step()
    return Step(
        restart.state,
        restart.context,
        (say("Agendamento cancelado. Podemos começar de novo quando quiser."),) + restart.messages,
    )


def _on_saving(context: ChatContext, text: str, env: ChatEnvironment) -> Step:
    return Step(
        ChatState.SAVING,
        context,
        (say("Só um instante, estou salvando seu agendamento."),),
    )


def _on_restart(context: ChatContext, text: str, env: ChatEnvironment) -> Step:
    return restart_step()


def _on_failure(state: ChatState, context: ChatContext, error: Exception) -> Step:
    if state == ChatState.SAVING and isinstance(error, (SlotTakenError, SlotUnavailableError)):
        # Back to time selection; the entry effect offers fresh slots
        return Step(
            ChatState.SELECT_TIME,
            replace(context, time=None, offered_times=()),
            (say("Este horário acabou de ser reservado. Por favor, escolha outro."),),
        )

    if state == ChatState.SAVING:
        content = f"Erro ao salvar agendamento: {error}"
    else:
        content = f"Não consegui carregar os horários: {error}"

    return Step(ChatState.ERROR, context, (say(content),))


_INPUT_HANDLERS = {
    ChatState.GREETING: _on_greeting,
    ChatState.SELECT_BARBER: _on_select_barber,
    ChatState.SELECT_DATE: _on_select_date,
    ChatState.SELECT_TIME: _on_select_time,
    ChatState.COLLECT_NAME: _on_collect_name,
    ChatState.COLLECT_PHONE: _on_collect_phone,
    ChatState.CONFIRM: _on_confirm,
    ChatState.SAVING: _on_saving,
    ChatState.SUCCESS: _on_restart,
    ChatState.ERROR: _on_restart,
}


# ============= DRIVER =============

class ChatAgent:
    """
    Runs the dialogue against a BookingService.

    Keeps the transcript, feeds user input into ``transition`` and performs
    the entry effects of SELECT_TIME and SAVING.
    """

    def __init__(self, booking: BookingService, max_time_options: int = 8) -> None:
        self._booking = booking
        self._max_time_options = max_time_options
        self.state = ChatState.GREETING
        self.context = ChatContext()
        self.messages: List[ChatMessage] = []

    def start(self) -> List[ChatMessage]:
        """Reset the conversation and return the welcome message."""
        self.state = ChatState.GREETING
        self.context = ChatContext()
        self.messages = [WELCOME]
        return [WELCOME]

    def restart(self) -> List[ChatMessage]:
        return self._apply(restart_step())

    def send(self, text: str) -> List[ChatMessage]:
        """
        Process one user message.

        Returns:
            The assistant messages produced in response
        """
        self.messages.append(ChatMessage(role="user", content=text))

        try:
            env = self._environment()
        except BarbershopError as exc:
            logger.warning("Could not load barbers for chat: %s", exc)
            reply = say("Tive um problema técnico. Tente novamente.")
            self.messages.append(reply)
            return [reply]

        previous = self.state
        replies = self._apply(transition(self.state, self.context, UserInput(text), env))

        # Effects run on entry only; one may lead into another (conflict -> SELECT_TIME)
        while self.state in EFFECT_STATES and self.state != previous:
            previous = self.state
            event = self._enter(self.state)
            replies.extend(self._apply(transition(self.state, self.context, event, env)))

        return replies

    def _environment(self) -> ChatEnvironment:
        return ChatEnvironment(
            barbers=tuple(self._booking.list_barbers()),
            today=self._booking.today(),
            max_time_options=self._max_time_options,
        )

    def _enter(self, state: ChatState) -> ChatEvent:
        context = self.context
        try:
            if state == ChatState.SELECT_TIME:
                slots = self._booking.available_slots(context.barber_id, context.day)
                return SlotsLoaded(tuple(slots))

            appointment = self._booking.book(
                barber_id=context.barber_id,
                day=context.day,
                time=context.time,
                client_name=context.customer_name,
                client_phone=context.customer_phone,
            )
            return BookingSaved(appointment)

        except BarbershopError as exc:
            logger.info("Chat %s effect failed: %s", state.value, exc)
            return BookingFailed(exc)

    def _apply(self, step: Step) -> List[ChatMessage]:
        self.state = step.state
        self.context = step.context
        self.messages.extend(step.messages)
        return list(step.messages)
