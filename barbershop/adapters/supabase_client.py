"""
Supabase (PostgREST) client for barber and appointment data.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

import requests

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

# Postgres unique_violation
UNIQUE_VIOLATION = "23505"


class SupabaseStore:
    """
    Store backed by the Supabase REST API (PostgREST).

    Implements both the barber registry and the appointment store. The
    database enforces uniqueness of (barber_id, appointment_date,
    appointment_time) for scheduled rows; a violation surfaces as
    ``SlotTakenError``.
    """

    def __init__(self, url: str, api_key: str, timeout: float = 10):
        """
        Initialize the REST client.

        Args:
            url: Project URL, e.g. https://abc.supabase.co
            api_key: Anon or service key
            timeout: Per-request timeout in seconds
        """
        self.base_url = f"{url.rstrip('/')}/rest/v1"
        self.timeout = timeout
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }

    # ============= BARBERS =============

    def list_barbers(self) -> List[Barber]:
        rows = self._request("GET", "barbers", params={"select": "*", "order": "name"})
        return [self._parse(barber_from_row, row) for row in rows or []]

    def get_barber(self, barber_id: str) -> Optional[Barber]:
        rows = self._request("GET", "barbers", params={"select": "*", "id": f"eq.{barber_id}"})
        if not rows:
            return None
        return self._parse(barber_from_row, rows[0])

    def create_barber(
        self,
        name: str,
        schedule: BarberSchedule,
        avatar_url: Optional[str] = None,
    ) -> Barber:
        payload = {"name": name, "avatar_url": avatar_url, **schedule_to_row(schedule)}
        rows = self._request("POST", "barbers", payload=payload)
        return self._parse(barber_from_row, self._single(rows, "barbers"))

    def update_barber(self, barber_id: str, changes: Dict[str, Any]) -> Barber:
        rows = self._request(
            "PATCH",
            "barbers",
            params={"id": f"eq.{barber_id}"},
            payload=barber_changes_to_row(changes),
        )
        if not rows:
            raise BarberNotFoundError(f"Barber not found: {barber_id}")
        return self._parse(barber_from_row, rows[0])

    def delete_barber(self, barber_id: str) -> None:
        rows = self._request("DELETE", "barbers", params={"id": f"eq.{barber_id}"})
        if not rows:
            raise BarberNotFoundError(f"Barber not found: {barber_id}")

    # ============= APPOINTMENTS =============

    def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        rows = self._request(
            "GET", "appointments", params={"select": "*", "id": f"eq.{appointment_id}"}
        )
        if not rows:
            return None
        return self._parse(appointment_from_row, rows[0])

    def list_appointments(self, barber_id: str, day: date) -> List[Appointment]:
        """Appointments of one barber on one day, any status."""
        rows = self._request(
            "GET",
            "appointments",
            params={
                "select": "*",
                "barber_id": f"eq.{barber_id}",
                "appointment_date": f"eq.{format_date_for_storage(day)}",
                "order": "appointment_time",
            },
        )
        return [self._parse(appointment_from_row, row) for row in rows or []]

    def list_all_appointments(self, day: Optional[date] = None) -> List[Appointment]:
        """All appointments (optionally for one day) with their barber embedded."""
        params = {
            "select": "*,barber:barbers(*)",
            "order": "appointment_date.desc,appointment_time",
        }
        if day is not None:
            params["appointment_date"] = f"eq.{format_date_for_storage(day)}"

        rows = self._request("GET", "appointments", params=params)
        return [self._parse(appointment_from_row, row) for row in rows or []]

    def create_appointment(self, appointment: NewAppointment) -> Appointment:
        rows = self._request("POST", "appointments", payload=new_appointment_to_row(appointment))
        return self._parse(appointment_from_row, self._single(rows, "appointments"))

    def update_appointment_status(
        self,
        appointment_id: str,
        status: AppointmentStatus,
    ) -> Appointment:
        rows = self._request(
            "PATCH",
            "appointments",
            params={"id": f"eq.{appointment_id}"},
            payload={"status": status.value},
        )
        if not rows:
            raise AppointmentNotFoundError(f"Appointment not found: {appointment_id}")
        return self._parse(appointment_from_row, rows[0])

    def delete_appointment(self, appointment_id: str) -> None:
        rows = self._request("DELETE", "appointments", params={"id": f"eq.{appointment_id}"})
        if not rows:
            raise AppointmentNotFoundError(f"Appointment not found: {appointment_id}")

    def test_connection(self) -> int:
        """
        Check reachability and credentials.

        Returns:
            Number of barbers visible with the configured key
        """
        return len(self._request("GET", "barbers", params={"select": "id"}) or [])

    # ============= HTTP =============

    def _request(
        self,
        method: str,
        table: str,
        *,
        params: Optional[Dict[str, str]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Perform a PostgREST call and decode the JSON body.

        Raises:
            SlotTakenError: On a unique constraint violation
            StoreError: On any other HTTP or transport failure
        """
        url = f"{self.base_url}/{table}"
        logger.debug("%s %s params=%s", method, url, params)

        try:
            response = requests.request(
                method,
                url,
                headers=self.headers,
                params=params,
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()

        except requests.exceptions.HTTPError as e:
            raise self._translate_http_error(e.response) from e

        except requests.exceptions.RequestException as e:
            raise StoreError(f"Failed to reach Supabase: {e}") from e

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise StoreError(f"Invalid JSON from Supabase ({table}): {e}") from e

    def _translate_http_error(self, response: requests.Response) -> Exception:
        body: Dict[str, Any] = {}
        try:
            decoded = response.json()
            if isinstance(decoded, dict):
                body = decoded
        except ValueError:
            pass

        code = str(body.get("code", ""))
        message = body.get("message") or response.reason or "Unknown error"

        if response.status_code == 409 or code == UNIQUE_VIOLATION:
            logger.info("Booking conflict reported by Supabase: %s", message)
            return SlotTakenError(message)

        return StoreError(f"Supabase request failed ({response.status_code}): {message}")

    @staticmethod
    def _single(rows: Any, table: str) -> Dict[str, Any]:
        if not rows:
            raise StoreError(f"Supabase returned no row for insert into {table}")
        return rows[0]

    @staticmethod
    def _parse(parser, row: Dict[str, Any]):
        try:
            return parser(row)
        except (KeyError, ValueError) as e:
            raise StoreError(f"Malformed row from Supabase: {e}") from e
