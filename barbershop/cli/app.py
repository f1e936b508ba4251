"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import Annotated, List, Optional, Sequence, Tuple, Union

import pendulum
import typer
from rich.columns import Columns
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..adapters import CredentialStore, MemoryStore, SupabaseStore, create_store
from ..config import AppConfig, load_config
from ..domain.date_utils import (
    format_date_for_display,
    format_date_short,
    format_time_of_day,
    parse_date,
    parse_time_of_day,
)
from ..domain.exceptions import BarbershopError, SlotTakenError
from ..domain.models import Appointment, AppointmentStatus, Barber, BarberSchedule, BreakTime
from ..domain.phone import mask_phone
from ..domain.slot_generator import SlotGenerator
from ..services.admin import AdminService
from ..services.booking import BookingService
from ..services.chat_agent import ChatAgent, ChatMessage

app = typer.Typer(
    name="barbershop",
    help="Barbershop booking: available slots, bookings, chat assistant and admin tools",
    add_completion=False
)

console = Console()

WEEKDAY_NAMES = ["Dom", "Seg", "Ter", "Qua", "Qui", "Sex", "Sáb"]

STATUS_STYLES = {
    AppointmentStatus.SCHEDULED: "green",
    AppointmentStatus.COMPLETED: "cyan",
    AppointmentStatus.CANCELED: "dim",
}

CONFLICT_MESSAGE = "Este horário acabou de ser reservado. Por favor, escolha outro."

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """
    Barbershop booking system.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _fail(message: str) -> None:
    console.print(f"[bold red]Erro:[/bold red] {message}")
    raise typer.Exit(1)


def _load(config_file: Optional[Path]) -> Tuple[AppConfig, Union[SupabaseStore, MemoryStore]]:
    try:
        config = load_config(config_file)
        store = create_store(config)
    except FileNotFoundError as e:
        _fail(str(e))
    except (ValueError, BarbershopError) as e:
        _fail(f"Configuração inválida: {e}")

    if isinstance(store, MemoryStore):
        console.print("[yellow]⚠  MODO DEMO: usando dados de exemplo[/yellow]")

    return config, store


def _booking_service(config: AppConfig, store) -> BookingService:
    return BookingService(
        barbers=store,
        appointments=store,
        slot_generator=SlotGenerator(timezone=config.timezone),
    )


def _admin_service(config: AppConfig, store) -> AdminService:
    return AdminService(store, store, slot_generator=SlotGenerator(timezone=config.timezone))


def _parse_day(value: Optional[str], booking: BookingService):
    if value is None:
        return booking.today()
    try:
        return parse_date(value)
    except ValueError as e:
        _fail(str(e))


def _parse_days(value: str) -> List[int]:
    try:
        return [int(item) for item in value.replace(" ", "").split(",") if item]
    except ValueError:
        _fail(f"Dias inválidos: '{value}'. Use números 0-6 separados por vírgula (0=Domingo).")


def _parse_breaks(values: Sequence[str]) -> List[BreakTime]:
    breaks = []
    for value in values:
        try:
            start, end = value.split("-", 1)
            breaks.append(BreakTime(start=parse_time_of_day(start), end=parse_time_of_day(end)))
        except ValueError as e:
            _fail(f"Pausa inválida '{value}' (use HH:mm-HH:mm): {e}")
    return breaks


def _parse_time(value: Optional[str]):
    if value is None:
        return None
    try:
        return parse_time_of_day(value)
    except ValueError as e:
        _fail(str(e))


def _describe_schedule(schedule: BarberSchedule) -> Tuple[str, str, str]:
    hours = f"{format_time_of_day(schedule.work_start)} - {format_time_of_day(schedule.work_end)}"
    days = ", ".join(WEEKDAY_NAMES[day] for day in sorted(schedule.work_days) if 0 <= day <= 6)
    breaks = ", ".join(str(item) for item in schedule.breaks) or "-"
    return hours, days, breaks


def _print_barbers(barbers: Sequence[Barber]) -> None:
    if not barbers:
        console.print("[yellow]Nenhum barbeiro cadastrado.[/yellow]")
        return

    table = Table(title="Barbeiros", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Nome", style="bold yellow")
    table.add_column("Horário")
    table.add_column("Dias")
    table.add_column("Slot", justify="right")
    table.add_column("Pausas")

    for barber in barbers:
        hours, days, breaks = _describe_schedule(barber.schedule)
        table.add_row(barber.id, barber.name, hours, days, f"{barber.schedule.slot_duration} min", breaks)

    console.print()
    console.print(table)
    console.print()


def _print_appointments(appointments: Sequence[Appointment], title: str) -> None:
    if not appointments:
        console.print("[yellow]Nenhum agendamento encontrado.[/yellow]")
        return

    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Data")
    table.add_column("Hora")
    table.add_column("Barbeiro", style="bold yellow")
    table.add_column("Cliente")
    table.add_column("Telefone")
    table.add_column("Status")

    for appointment in appointments:
        style = STATUS_STYLES[appointment.status]
        table.add_row(
            appointment.id,
            format_date_short(appointment.date),
            appointment.time,
            appointment.barber.name if appointment.barber else appointment.barber_id,
            appointment.client_name,
            mask_phone(appointment.client_phone),
            f"[{style}]{appointment.status.value}[/{style}]",
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def slots(
    barber: Annotated[str, typer.Argument(help="Barber id or name")],
    date: Annotated[Optional[str], typer.Option("--date", "-d", help="Date (YYYY-MM-DD). Defaults to today")] = None,
    config_file: ConfigOption = None,
):
    """
    Show the slot grid of a barber for one day.
    """
    config, store = _load(config_file)
    booking = _booking_service(config, store)
    day = _parse_day(date, booking)

    try:
        selected = booking.find_barber(barber)
        grid = booking.available_slots(selected.id, day)
    except BarbershopError as e:
        _fail(str(e))

    console.print(f"\n[bold cyan]💈 {selected.name}[/bold cyan] – {format_date_for_display(day)}\n")

    if not grid:
        console.print("[yellow]⚠ Nenhum horário neste dia.[/yellow]\n")
        return

    cells = [
        Text(slot.time, style="bold green") if slot.available else Text(slot.time, style="dim strike")
        for slot in grid
    ]
    console.print(Columns(cells, padding=(0, 3)))

    free = sum(1 for slot in grid if slot.available)
    console.print(f"\n[green]✓ {free} de {len(grid)} horário(s) livre(s)[/green]\n")


@app.command()
def book(
    barber: Annotated[str, typer.Argument(help="Barber id or name")],
    date: Annotated[str, typer.Option("--date", "-d", help="Date (YYYY-MM-DD)")],
    time: Annotated[str, typer.Option("--time", "-t", help="Slot start (HH:mm)")],
    name: Annotated[str, typer.Option("--name", "-n", help="Client name")],
    phone: Annotated[str, typer.Option("--phone", "-p", help="Client phone")],
    config_file: ConfigOption = None,
):
    """
    Book an available slot.
    """
    config, store = _load(config_file)
    booking = _booking_service(config, store)
    day = _parse_day(date, booking)

    try:
        selected = booking.find_barber(barber)
        appointment = booking.book(
            barber_id=selected.id,
            day=day,
            time=time,
            client_name=name,
            client_phone=phone,
        )
    except SlotTakenError:
        _fail(CONFLICT_MESSAGE)
    except BarbershopError as e:
        _fail(str(e))

    console.print(Panel.fit(
        f"[bold green]✓ Agendamento confirmado![/bold green]\n\n"
        f"[bold]Barbeiro:[/bold] {selected.name}\n"
        f"[bold]Data:[/bold] {format_date_for_display(appointment.date)}\n"
        f"[bold]Hora:[/bold] {appointment.time}\n"
        f"[bold]Cliente:[/bold] {appointment.client_name} ({mask_phone(appointment.client_phone)})",
        title=f"Agendamento #{appointment.id}"
    ))


def _print_chat_messages(messages: Sequence[ChatMessage]) -> None:
    for message in messages:
        console.print(f"\n[bold cyan]💈 Assistente:[/bold cyan] {message.content}")
        for idx, option in enumerate(message.options, 1):
            console.print(f"   {idx}. {option}")


@app.command()
def chat(config_file: ConfigOption = None):
    """
    Book through the conversational assistant. Type 'sair' to quit.
    """
    config, store = _load(config_file)
    agent = ChatAgent(_booking_service(config, store), max_time_options=config.chat.max_time_options)

    _print_chat_messages(agent.start())

    while True:
        try:
            text = typer.prompt("\n→ Você", default="", show_default=False).strip()
        except typer.Abort:
            break

        if text.lower() in ("sair", "/sair"):
            break
        if text.lower() == "/reiniciar":
            _print_chat_messages(agent.restart())
            continue

        # A bare number picks from the last offered options
        last_options = agent.messages[-1].options if agent.messages else ()
        if text.isdigit() and 1 <= int(text) <= len(last_options):
            text = last_options[int(text) - 1]

        _print_chat_messages(agent.send(text))

    console.print("\n[dim]Até logo![/dim]\n")


@app.command("barbers")
def list_barbers(config_file: ConfigOption = None):
    """
    List all barbers.
    """
    config, store = _load(config_file)
    try:
        _print_barbers(_admin_service(config, store).list_barbers())
    except BarbershopError as e:
        _fail(str(e))


@app.command()
def add_barber(
    name: Annotated[str, typer.Argument(help="Barber name")],
    start: Annotated[str, typer.Option("--start", help="Work start (HH:mm)")] = "09:00",
    end: Annotated[str, typer.Option("--end", help="Work end (HH:mm)")] = "18:00",
    days: Annotated[str, typer.Option("--days", help="Work days, 0=Sunday (e.g. 1,2,3,4,5,6)")] = "1,2,3,4,5,6",
    slot_duration: Annotated[int, typer.Option("--slot-duration", help="Slot length in minutes")] = 45,
    breaks: Annotated[Optional[List[str]], typer.Option("--break", help="Break HH:mm-HH:mm (repeatable)")] = None,
    avatar_url: Annotated[Optional[str], typer.Option("--avatar-url", help="Avatar image URL")] = None,
    config_file: ConfigOption = None,
):
    """
    Add a barber.
    """
    config, store = _load(config_file)

    schedule = BarberSchedule(
        work_start=_parse_time(start),
        work_end=_parse_time(end),
        work_days=_parse_days(days),
        slot_duration=slot_duration,
        breaks=_parse_breaks(breaks or []),
    )

    try:
        barber = _admin_service(config, store).create_barber(name, schedule, avatar_url)
    except (ValueError, BarbershopError) as e:
        _fail(str(e))

    console.print(f"\n[green]✓ Barbeiro criado: {barber.name} (ID {barber.id})[/green]\n")


@app.command()
def update_barber(
    barber_id: Annotated[str, typer.Argument(help="Barber id")],
    name: Annotated[Optional[str], typer.Option("--name", help="New name")] = None,
    start: Annotated[Optional[str], typer.Option("--start", help="Work start (HH:mm)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="Work end (HH:mm)")] = None,
    days: Annotated[Optional[str], typer.Option("--days", help="Work days, 0=Sunday")] = None,
    slot_duration: Annotated[Optional[int], typer.Option("--slot-duration", help="Slot length in minutes")] = None,
    breaks: Annotated[Optional[List[str]], typer.Option("--break", help="Replace breaks (repeatable)")] = None,
    clear_breaks: Annotated[bool, typer.Option("--clear-breaks", help="Remove all breaks")] = False,
    avatar_url: Annotated[Optional[str], typer.Option("--avatar-url", help="Avatar image URL")] = None,
    config_file: ConfigOption = None,
):
    """
    Update a barber's details or schedule.
    """
    config, store = _load(config_file)

    new_breaks = [] if clear_breaks else (_parse_breaks(breaks) if breaks else None)

    try:
        barber = _admin_service(config, store).update_barber(
            barber_id,
            name=name,
            avatar_url=avatar_url,
            work_start=_parse_time(start),
            work_end=_parse_time(end),
            work_days=_parse_days(days) if days is not None else None,
            slot_duration=slot_duration,
            breaks=new_breaks,
        )
    except (ValueError, BarbershopError) as e:
        _fail(str(e))

    console.print(f"\n[green]✓ Barbeiro atualizado: {barber.name}[/green]\n")


@app.command()
def remove_barber(
    barber_id: Annotated[str, typer.Argument(help="Barber id")],
    config_file: ConfigOption = None,
):
    """
    Remove a barber.
    """
    config, store = _load(config_file)
    try:
        _admin_service(config, store).delete_barber(barber_id)
    except BarbershopError as e:
        _fail(str(e))

    console.print("\n[green]✓ Barbeiro removido[/green]\n")


@app.command()
def appointments(
    date: Annotated[Optional[str], typer.Option("--date", "-d", help="Only this date (YYYY-MM-DD)")] = None,
    status: Annotated[Optional[AppointmentStatus], typer.Option("--status", "-s", help="Only this status")] = None,
    config_file: ConfigOption = None,
):
    """
    List appointments, newest first.
    """
    config, store = _load(config_file)
    day = _parse_day(date, _booking_service(config, store)) if date else None

    try:
        items = _admin_service(config, store).list_appointments(day, status=status)
    except BarbershopError as e:
        _fail(str(e))

    title = f"Agendamentos – {format_date_short(day)}" if day else "Agendamentos"
    if status is not None:
        title = f"{title} ({status.value})"
    _print_appointments(items, title)


@app.command()
def reschedule(
    appointment_id: Annotated[str, typer.Argument(help="Appointment id")],
    date: Annotated[str, typer.Option("--date", "-d", help="New date (YYYY-MM-DD)")],
    time: Annotated[str, typer.Option("--time", "-t", help="New slot start (HH:mm)")],
    config_file: ConfigOption = None,
):
    """
    Move a scheduled appointment to another date and time.
    """
    config, store = _load(config_file)
    day = _parse_day(date, _booking_service(config, store))

    try:
        appointment = _admin_service(config, store).reschedule(appointment_id, day, time)
    except SlotTakenError:
        _fail(CONFLICT_MESSAGE)
    except BarbershopError as e:
        _fail(str(e))

    console.print(
        f"\n[green]✓ Agendamento #{appointment_id} remarcado para "
        f"{format_date_short(appointment.date)} às {appointment.time} "
        f"(novo #{appointment.id})[/green]\n"
    )


def _change_status(appointment_id: str, status: AppointmentStatus, config_file: Optional[Path]) -> None:
    config, store = _load(config_file)
    try:
        appointment = _admin_service(config, store).update_status(appointment_id, status)
    except SlotTakenError:
        _fail(CONFLICT_MESSAGE)
    except BarbershopError as e:
        _fail(str(e))

    console.print(f"\n[green]✓ Agendamento #{appointment.id}: {appointment.status.value}[/green]\n")


@app.command()
def complete(
    appointment_id: Annotated[str, typer.Argument(help="Appointment id")],
    config_file: ConfigOption = None,
):
    """
    Mark an appointment as completed.
    """
    _change_status(appointment_id, AppointmentStatus.COMPLETED, config_file)


@app.command()
def cancel(
    appointment_id: Annotated[str, typer.Argument(help="Appointment id")],
    config_file: ConfigOption = None,
):
    """
    Cancel an appointment (frees the slot).
    """
    _change_status(appointment_id, AppointmentStatus.CANCELED, config_file)


@app.command()
def delete_appointment(
    appointment_id: Annotated[str, typer.Argument(help="Appointment id")],
    config_file: ConfigOption = None,
):
    """
    Delete an appointment.
    """
    config, store = _load(config_file)
    try:
        _admin_service(config, store).delete_appointment(appointment_id)
    except BarbershopError as e:
        _fail(str(e))

    console.print("\n[green]✓ Agendamento removido[/green]\n")


@app.command()
def dashboard(config_file: ConfigOption = None):
    """
    Show today's overview.
    """
    config, store = _load(config_file)
    admin = _admin_service(config, store)
    today = _booking_service(config, store).today()

    try:
        stats = admin.dashboard(today)
        todays = [a for a in admin.list_appointments(today) if a.is_scheduled]
    except BarbershopError as e:
        _fail(str(e))

    console.print(Panel.fit(
        f"[bold]Barbeiros:[/bold] {stats.barbers}\n"
        f"[bold]Agendamentos hoje:[/bold] {stats.today_scheduled}\n"
        f"[bold]Agendados (total):[/bold] {stats.scheduled_total}\n"
        f"[bold]Concluídos (total):[/bold] {stats.completed_total}",
        title=f"📊 {format_date_for_display(today)}"
    ))

    todays.sort(key=lambda a: a.time)
    _print_appointments(todays, "Próximos atendimentos de hoje")


@app.command()
def calendar(
    month: Annotated[Optional[str], typer.Option("--month", "-m", help="Month (YYYY-MM). Defaults to this month")] = None,
    barber: Annotated[Optional[str], typer.Option("--barber", "-b", help="Only this barber (id or name)")] = None,
    config_file: ConfigOption = None,
):
    """
    Show a month calendar with the number of scheduled appointments per day.
    """
    config, store = _load(config_file)
    booking = _booking_service(config, store)

    if month is None:
        reference = booking.today()
    else:
        try:
            reference = pendulum.from_format(month.strip(), "YYYY-MM").date()
        except ValueError:
            _fail(f"Mês inválido: '{month}'. Use YYYY-MM.")

    try:
        selected = booking.find_barber(barber) if barber else None
        overview = _admin_service(config, store).month_overview(
            reference.year,
            reference.month,
            barber_id=selected.id if selected else None,
        )
    except BarbershopError as e:
        _fail(str(e))

    title = reference.format("MMMM YYYY", locale="pt_br").capitalize()
    if selected:
        title = f"{title} – {selected.name}"

    table = Table(title=f"📅 {title}", show_lines=True)
    for name in WEEKDAY_NAMES:
        table.add_column(name, justify="center")

    for week in overview.weeks:
        cells = []
        for cell in week:
            if cell is None:
                cells.append("")
            elif cell.scheduled:
                cells.append(f"[bold]{cell.day.day}[/bold]\n[green]{cell.scheduled} ag.[/green]")
            else:
                cells.append(f"[dim]{cell.day.day}[/dim]")
        table.add_row(*cells)

    console.print()
    console.print(table)
    total = sum(cell.scheduled for week in overview.weeks for cell in week if cell)
    console.print(f"\n[green]{total} agendamento(s) no mês[/green]\n")


@app.command()
def store_key(
    url: Annotated[str, typer.Argument(help="Supabase project URL")],
):
    """
    Verify a Supabase API key against the project and save it in the system keyring.
    """
    api_key = typer.prompt("API key", hide_input=True)

    try:
        visible = SupabaseStore(url, api_key).test_connection()
    except BarbershopError as e:
        _fail(f"Não foi possível validar a chave: {e}")

    try:
        CredentialStore().set_api_key(url, api_key)
    except BarbershopError as e:
        _fail(str(e))

    console.print(f"\n[green]✓ Chave salva no keyring ({visible} barbeiro(s) visível(is)).[/green]\n")


@app.command()
def clear_key(
    url: Annotated[str, typer.Argument(help="Supabase project URL")],
):
    """
    Remove the stored Supabase API key.
    """
    try:
        removed = CredentialStore().delete_api_key(url)
    except BarbershopError as e:
        _fail(str(e))

    if removed:
        console.print("\n[green]✓ Chave removida do keyring.[/green]\n")
    else:
        console.print("\n[yellow]Nenhuma chave salva para esta URL.[/yellow]\n")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]barbershop[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
