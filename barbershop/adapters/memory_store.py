"""
In-memory store used when no remote database is configured (demo mode).
"""

import json
import logging
import threading
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import pendulum
from filelock import FileLock, Timeout

from ..domain.date_utils import format_date_for_storage
from ..domain.exceptions import (
    AppointmentNotFoundError,
    BarberNotFoundError,
    SlotTakenError,
    StoreError,
)
from ..domain.models import Appointment, AppointmentStatus, Barber, BarberSchedule, NewAppointment
from .rows import (
    appointment_from_row,
    barber_changes_to_row,
    barber_from_row,
    new_appointment_to_row,
    schedule_to_row,
)

logger = logging.getLogger(__name__)

SEED_FILE = Path(__file__).parent / "mock_barbershop_data.json"
LOCK_TIMEOUT_SECONDS = 10


class MemoryStore:
    """
    Store that keeps barbers and appointments in process memory.

    Seed data is loaded from mock_barbershop_data.json, where appointment
    dates are given as ``day_offset`` relative to today. When ``data_file``
    is set, state is read from and written back to that file instead, so
    the demo survives between CLI invocations.

    Access is serialized by a lock, which also makes the check for an
    existing scheduled appointment on the same barber/date/time atomic with
    the insert. With a data file, every operation additionally holds an
    exclusive lock on ``<data_file>.lock`` and reloads the file first, so
    several processes sharing one file see each other's writes.
    """

    def __init__(
        self,
        data_file: Optional[Path] = None,
        seed_file: Path = SEED_FILE,
        today: Optional[date] = None,
        timezone: str = "America/Sao_Paulo",
    ):
        """
        Initialize the store.

        Args:
            data_file: Optional JSON file used to persist state
            seed_file: JSON file with the demo barbers and appointments
            today: Reference date for seed day offsets (defaults to today)
            timezone: Shop timezone, used for "today" and timestamps
        """
        self.data_file = data_file
        self.timezone = timezone
        self._lock = threading.RLock()
        self._file_lock: Optional[FileLock] = None
        self._barbers: Dict[str, Dict[str, Any]] = {}
        self._appointments: Dict[str, Dict[str, Any]] = {}

        self._load_seed(seed_file, today or pendulum.today(timezone).date())

        if data_file is not None:
            try:
                data_file.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StoreError(f"Could not create directory for {data_file}: {e}") from e
            self._file_lock = FileLock(f"{data_file}.lock", timeout=LOCK_TIMEOUT_SECONDS)

    def _load_seed(self, seed_file: Path, today: date) -> None:
        """Load demo data from the seed file."""
        data = self._read_json(seed_file)

        for row in data.get("barbers", []):
            self._barbers[str(row["id"])] = dict(row, id=str(row["id"]))

        for row in data.get("appointments", []):
            offset = int(row.get("day_offset", 0))
            appointment_row = {
                key: value for key, value in row.items() if key != "day_offset"
            }
            appointment_row["id"] = str(row["id"])
            appointment_row["appointment_date"] = format_date_for_storage(
                pendulum.date(today.year, today.month, today.day).add(days=offset)
            )
            self._appointments[appointment_row["id"]] = appointment_row

    def _load_state(self, data_file: Path) -> None:
        data = self._read_json(data_file)
        self._barbers = {str(row["id"]): row for row in data.get("barbers", [])}
        self._appointments = {str(row["id"]): row for row in data.get("appointments", [])}

    @staticmethod
    def _read_json(path: Path) -> Dict[str, Any]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise StoreError(f"Could not load mock data from {path}: {e}") from e

        if not isinstance(data, dict):
            raise StoreError(f"Mock data in {path} must be a JSON object")

        return data

    def _save(self) -> None:
        """Write the current state to the data file, if one is configured."""
        if self.data_file is None:
            return

        state = {
            "barbers": list(self._barbers.values()),
            "appointments": list(self._appointments.values()),
        }
        try:
            with open(self.data_file, "w", encoding="utf-8") as f:
                json.dump(state, f, ensure_ascii=False, indent=2)
        except OSError as e:
            raise StoreError(f"Could not save mock data to {self.data_file}: {e}") from e

    @contextmanager
    def _locked(self, write: bool = False) -> Iterator[None]:
        """
        Hold the process lock and, with a data file, the file lock.

        The data file (when present) is reloaded on entry; with ``write`` the
        state is saved on a clean exit. An exception inside the block leaves
        the file untouched.
        """
        with self._lock:
            if self._file_lock is None:
                yield
                return

            try:
                self._file_lock.acquire()
            except Timeout as e:
                raise StoreError(f"Timed out waiting for lock on {self.data_file}") from e

            try:
                if self.data_file.exists():
                    self._load_state(self.data_file)
                yield
                if write:
                    self._save()
            finally:
                self._file_lock.release()

    def _next_id(self, table: Dict[str, Dict[str, Any]]) -> str:
        numeric_ids = [int(key) for key in table if key.isdigit()]
        return str(max(numeric_ids, default=0) + 1)

    def _timestamp(self) -> str:
        return pendulum.now(self.timezone).to_iso8601_string()

    # ============= BARBERS =============

    def list_barbers(self) -> List[Barber]:
        with self._locked():
            rows = sorted(self._barbers.values(), key=lambda row: row["name"])
        return [barber_from_row(row) for row in rows]

    def get_barber(self, barber_id: str) -> Optional[Barber]:
        with self._locked():
            row = self._barbers.get(str(barber_id))
        return barber_from_row(row) if row else None

    def create_barber(
        self,
        name: str,
        schedule: BarberSchedule,
        avatar_url: Optional[str] = None,
    ) -> Barber:
        with self._locked(write=True):
            barber_id = self._next_id(self._barbers)
            row = {
                "id": barber_id,
                "name": name,
                "avatar_url": avatar_url,
                **schedule_to_row(schedule),
                "created_at": self._timestamp(),
            }
            self._barbers[barber_id] = row

        logger.info("Created barber %s (%s)", barber_id, name)
        return barber_from_row(row)

    def update_barber(self, barber_id: str, changes: Dict[str, Any]) -> Barber:
        with self._locked(write=True):
            row = self._barbers.get(str(barber_id))
            if row is None:
                raise BarberNotFoundError(f"Barber not found: {barber_id}")
            row.update(barber_changes_to_row(changes))
        return barber_from_row(row)

    def delete_barber(self, barber_id: str) -> None:
        with self._locked(write=True):
            if self._barbers.pop(str(barber_id), None) is None:
                raise BarberNotFoundError(f"Barber not found: {barber_id}")

    # ============= APPOINTMENTS =============

    def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        with self._locked():
            row = self._appointments.get(str(appointment_id))
        return appointment_from_row(row) if row else None

    def list_appointments(self, barber_id: str, day: date) -> List[Appointment]:
        """Appointments of one barber on one day, any status."""
        day_string = format_date_for_storage(day)
        with self._locked():
            rows = [
                row for row in self._appointments.values()
                if row["barber_id"] == str(barber_id) and row["appointment_date"] == day_string
            ]
        rows.sort(key=lambda row: row["appointment_time"])
        return [appointment_from_row(row) for row in rows]

    def list_all_appointments(self, day: Optional[date] = None) -> List[Appointment]:
        """All appointments (optionally for one day) with their barber attached."""
        with self._locked():
            rows = list(self._appointments.values())
            barbers = dict(self._barbers)
        if day is not None:
            day_string = format_date_for_storage(day)
            rows = [row for row in rows if row["appointment_date"] == day_string]

        # Newest date first, then by time within a day
        rows.sort(key=lambda row: row["appointment_time"])
        rows.sort(key=lambda row: row["appointment_date"], reverse=True)

        appointments = []
        for row in rows:
            appointment = appointment_from_row(row)
            barber_row = barbers.get(appointment.barber_id)
            appointment.barber = barber_from_row(barber_row) if barber_row else None
            appointments.append(appointment)
        return appointments

    def create_appointment(self, appointment: NewAppointment) -> Appointment:
        row = new_appointment_to_row(appointment)

        with self._locked(write=True):
            self._ensure_slot_free(row["barber_id"], row["appointment_date"], row["appointment_time"])

            row["id"] = self._next_id(self._appointments)
            row["status"] = AppointmentStatus.SCHEDULED.value
            row["created_at"] = self._timestamp()
            self._appointments[row["id"]] = row

        return appointment_from_row(row)

    def update_appointment_status(
        self,
        appointment_id: str,
        status: AppointmentStatus,
    ) -> Appointment:
        with self._locked(write=True):
            row = self._appointments.get(str(appointment_id))
            if row is None:
                raise AppointmentNotFoundError(f"Appointment not found: {appointment_id}")

            if status == AppointmentStatus.SCHEDULED and row["status"] != status.value:
                self._ensure_slot_free(
                    row["barber_id"],
                    row["appointment_date"],
                    row["appointment_time"],
                    exclude_id=row["id"],
                )

            row["status"] = status.value
        return appointment_from_row(row)

    def delete_appointment(self, appointment_id: str) -> None:
        with self._locked(write=True):
            if self._appointments.pop(str(appointment_id), None) is None:
                raise AppointmentNotFoundError(f"Appointment not found: {appointment_id}")

    def _ensure_slot_free(
        self,
        barber_id: str,
        day_string: str,
        time_string: str,
        exclude_id: Optional[str] = None,
    ) -> None:
        """Enforce one scheduled appointment per barber/date/time. Call with the lock held."""
        for row in self._appointments.values():
            if row["id"] == exclude_id:
                continue
            if (
                row["barber_id"] == barber_id
                and row["appointment_date"] == day_string
                and row["appointment_time"] == time_string
                and row["status"] == AppointmentStatus.SCHEDULED.value
            ):
                logger.info(
                    "Slot %s %s already taken for barber %s", day_string, time_string, barber_id
                )
                raise SlotTakenError(
                    f"Slot {day_string} {time_string} is already booked for barber {barber_id}"
                )
