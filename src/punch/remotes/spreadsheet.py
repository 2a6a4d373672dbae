"""Google Sheets remote.

Each session is one row. Which column holds which field is configured per
remote; see ``ColumnMapping``. Values are written RAW so they read back
exactly as written.
"""

import json
import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

import pydantic
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from tqdm import tqdm

from ..config import SpreadsheetRemote
from ..db.schemas import Session
from ..db.sqlite import Database
from ..errors import ConfigError, PartialWriteError, RemoteUnavailableError, SchemaError
from .base import SyncSource

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMATS = ("%H:%M:%S", "%H:%M")

# Errors that mean "could not talk to Google", as opposed to bad data
TRANSPORT_ERRORS = (HttpError, GoogleAuthError, OSError)


def column_index(column: str) -> int:
    """Zero-based index of a column letter (A -> 0, AA -> 26)."""
    index = 0
    for char in column.upper():
        index = index * 26 + (ord(char) - ord("A") + 1)
    return index - 1


def format_duration(duration: timedelta) -> str:
    """Format a duration as H:MM:SS."""
    total = int(duration.total_seconds())
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours}:{minutes:02d}:{seconds:02d}"


def parse_date(value: str) -> date:
    return datetime.strptime(value, DATE_FORMAT).date()


def parse_time(value: str) -> time:
    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(value, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"invalid time {value!r}")


class SpreadsheetSource(SyncSource):
    """Sessions stored as rows of a Google Sheets tab."""

    kind = "spreadsheet"

    def __init__(
        self,
        name: str,
        config: SpreadsheetRemote,
        db: Database,
        service: Optional[Any] = None,
    ):
        """Initialize spreadsheet source.

        Args:
            name: Remote name from the config
            config: Validated spreadsheet remote settings
            db: Local store, used to look up client rates for earnings
            service: Prebuilt Sheets API service (built on first use if None)
        """
        super().__init__(name, db)
        self.config = config
        self.columns = config.columns
        self._service = service

    # ========================================================================
    # Connection
    # ========================================================================

    @property
    def service(self) -> Any:
        if self._service is None:
            self._service = self._connect()
        return self._service

    def _connect(self) -> Any:
        """Build the Sheets API service from the configured credentials."""
        credentials_file = self.config.credentials_file
        if credentials_file is None or not credentials_file.exists():
            raise ConfigError(
                f"remote {self.name!r}: credentials file not found: {credentials_file}"
            )

        try:
            info = json.loads(credentials_file.read_text(encoding="utf-8"))
            if info.get("type") == "service_account":
                creds = service_account.Credentials.from_service_account_info(
                    info, scopes=SCOPES
                )
            else:
                creds = self._user_credentials()
            return build("sheets", "v4", credentials=creds, cache_discovery=False)
        except json.JSONDecodeError as e:
            raise ConfigError(f"remote {self.name!r}: invalid credentials file: {e}") from e
        except TRANSPORT_ERRORS as e:
            raise RemoteUnavailableError(f"remote {self.name!r}: {e}") from e

    def _user_credentials(self) -> Credentials:
        """OAuth user credentials, cached in the token file."""
        token_file = self.config.token_file or self.config.credentials_file.with_name(
            f"{self.name}-token.json"
        )

        creds = None
        if token_file.exists():
            creds = Credentials.from_authorized_user_file(str(token_file), SCOPES)

        if creds and creds.valid:
            return creds
        if creds and creds.expired and creds.refresh_token:
            creds.refresh(Request())
        else:
            flow = InstalledAppFlow.from_client_secrets_file(
                str(self.config.credentials_file), SCOPES
            )
            creds = flow.run_local_server(port=0)

        token_file.write_text(creds.to_json(), encoding="utf-8")
        return creds

    def _range(self, cells: str = "") -> str:
        sheet = self.config.sheet_name.replace("'", "''")
        return f"'{sheet}'!{cells}" if cells else f"'{sheet}'"

    def _get_values(self, cells: str = "") -> list[list[str]]:
        try:
            response = (
                self.service.spreadsheets()
                .values()
                .get(
                    spreadsheetId=self.config.spreadsheet_id,
                    range=self._range(cells),
                    valueRenderOption="FORMATTED_VALUE",
                )
                .execute()
            )
        except TRANSPORT_ERRORS as e:
            raise RemoteUnavailableError(f"remote {self.name!r}: {e}") from e
        return response.get("values", [])

    # ========================================================================
    # Pull
    # ========================================================================

    def pull(self) -> list[Session]:
        """Read every session row from the sheet."""
        rows = self._get_values()

        sessions: list[Session] = []
        seen: dict[str, int] = {}
        for offset, row in enumerate(rows[self.config.header_rows:]):
            row_number = self.config.header_rows + offset + 1
            if not any(str(cell).strip() for cell in row):
                continue
            session = self._row_to_session(row, row_number)
            if session.id in seen:
                raise SchemaError(
                    f"remote {self.name!r}: id {session.id!r} appears in rows "
                    f"{seen[session.id]} and {row_number}"
                )
            seen[session.id] = row_number
            sessions.append(session)

        logger.debug("Read %d session row(s) from %s", len(sessions), self.name)
        return sessions

    def _cell(self, row: list, field: str) -> str:
        column = getattr(self.columns, field)
        if column is None:
            return ""
        index = column_index(column)
        if index >= len(row):
            return ""
        return str(row[index]).strip()

    def _row_to_session(self, row: list, row_number: int) -> Session:
        """Convert one sheet row to a Session.

        The end date is read from the end date column when one is mapped.
        Otherwise an end time earlier than the start time means the session ran
        past midnight.

        Raises:
            SchemaError: If a required cell is empty or a value cannot be parsed
        """
        where = f"remote {self.name!r} row {row_number}"

        values = {field: self._cell(row, field) for field in ("id", "client", "date", "start_time")}
        missing = [field for field, value in values.items() if not value]
        if missing:
            raise SchemaError(f"{where}: missing {', '.join(missing)}")

        try:
            day = parse_date(values["date"])
            start = datetime.combine(day, parse_time(values["start_time"]))
            end = None
            end_value = self._cell(row, "end_time")
            end_day = self._cell(row, "end_date")
            if end_value and end_day:
                end = datetime.combine(parse_date(end_day), parse_time(end_value))
            elif end_value:
                end = datetime.combine(day, parse_time(end_value))
                if end < start:
                    end += timedelta(days=1)
        except ValueError as e:
            raise SchemaError(f"{where}: {e}") from e

        try:
            return Session(
                id=values["id"],
                client=values["client"],
                start=start,
                end=end,
                note=self._cell(row, "note") or None,
            )
        except pydantic.ValidationError as e:
            raise SchemaError(f"{where}: {e}") from e

    # ========================================================================
    # Push
    # ========================================================================

    def push(self, sessions: list[Session]) -> None:
        """Update rows of known ids in place and append the rest.

        Rows are written in batches; a failed batch does not stop the others.
        Sessions the row layout cannot hold are not written.

        Raises:
            PartialWriteError: If a batch failed or a session could not be
                represented; the other rows are still written
        """
        id_column = self.columns.id
        existing = self._get_values(f"{id_column}:{id_column}")

        row_by_id: dict[str, int] = {}
        for index, row in enumerate(existing):
            if index < self.config.header_rows or not row:
                continue
            value = str(row[0]).strip()
            if value:
                row_by_id[value] = index + 1
        next_row = max(len(existing), self.config.header_rows) + 1

        rates = {client.name: client.rate for client in self.db.get_all_clients()}

        updates: list[tuple[str, list[dict]]] = []
        unrepresentable: list[str] = []
        for session in sorted(sessions, key=lambda s: s.id):
            if not self._fits_row(session):
                logger.warning(
                    "Session %s ends %s, which a row without an end date column cannot hold",
                    session.id,
                    session.end.isoformat(sep=" "),
                )
                unrepresentable.append(session.id)
                continue
            row_number = row_by_id.get(session.id)
            if row_number is None:
                row_number = next_row
                next_row += 1
            updates.append((session.id, self._session_ranges(session, row_number, rates)))

        batch_size = self.config.batch_size
        batches = [updates[i:i + batch_size] for i in range(0, len(updates), batch_size)]

        failed: list[str] = []
        last_error: Optional[Exception] = None
        for batch in tqdm(
            batches, desc=f"Pushing to {self.name}", unit="batch", disable=len(batches) < 2
        ):
            body = {
                "valueInputOption": "RAW",
                "data": [r for _, ranges in batch for r in ranges],
            }
            try:
                (
                    self.service.spreadsheets()
                    .values()
                    .batchUpdate(spreadsheetId=self.config.spreadsheet_id, body=body)
                    .execute()
                )
            except TRANSPORT_ERRORS as e:
                logger.warning("Failed writing %d row(s) to %s: %s", len(batch), self.name, e)
                failed.extend(session_id for session_id, _ in batch)
                last_error = e

        if failed or unrepresentable:
            reasons = []
            if last_error is not None:
                reasons.append(str(last_error))
            if unrepresentable:
                reasons.append(
                    "sessions ending on a later day need an end_date column: "
                    + ", ".join(unrepresentable)
                )
            raise PartialWriteError(failed + unrepresentable, reason="; ".join(reasons))

    def _fits_row(self, session: Session) -> bool:
        """Whether the session reads back unchanged from its row."""
        if session.end is None or self.columns.end_date is not None:
            return True
        end = datetime.combine(session.start.date(), session.end.time())
        if end < session.start:
            end += timedelta(days=1)
        return end == session.end

    def _session_ranges(
        self, session: Session, row_number: int, rates: dict[str, int]
    ) -> list[dict]:
        duration = session.duration()
        earnings = session.earnings(rates.get(session.client))
        values = {
            "id": session.id,
            "client": session.client,
            "date": session.start.strftime(DATE_FORMAT),
            "start_time": session.start.strftime("%H:%M:%S"),
            "end_time": session.end.strftime("%H:%M:%S") if session.end else "",
            "end_date": session.end.strftime(DATE_FORMAT) if session.end else "",
            "total_time": format_duration(duration) if duration is not None else "",
            "note": session.note or "",
            "earnings": f"{earnings:.2f}" if earnings is not None else "",
        }
        return [
            {"range": self._range(f"{column}{row_number}"), "values": [[values[field]]]}
            for field, column in self.columns.items()
        ]
