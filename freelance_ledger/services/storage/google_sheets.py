"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the shared backend because:
1. The owner can read projects and expenses directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- No transactions: a project row is replaced in a single range update,
  so a failed write leaves the previous aggregate in place
- Limited query capabilities (we filter in Python)
- One worksheet per record type; list/nested fields are JSON-serialized

The implementation follows the abstract interface, so the engine does
not know it is talking to a spreadsheet.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Optional, TypeVar

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from freelance_ledger.config import GoogleSheetsSettings, get_settings
from freelance_ledger.models.ledger import (
    Expense,
    ExpenseCadence,
    ExpenseStatus,
    Partner,
    PartnerStatus,
    Project,
    ProjectAggregate,
    ProjectPartner,
    ProjectStatus,
    Withdrawal,
    WithdrawalStatus,
)
from freelance_ledger.services.storage.interface import (
    BackendConnectionError,
    LedgerStorageInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)

RecordT = TypeVar("RecordT")


# Column mappings for the Projects sheet
PROJECT_COLUMNS = [
    "id",
    "owner_id",
    "title",
    "platform_name",
    "status",
    "start_date",
    "price",
    "currency",
    "fee_percent",
    "charity_enabled",
    "partners_json",
    "aggregate_json",
    "created_at",
    "updated_at",
]

# Column mappings for the Expenses sheet
EXPENSE_COLUMNS = [
    "id",
    "owner_id",
    "name",
    "amount",
    "currency",
    "cadence",
    "status",
    "project_ids_json",
    "category",
    "payment_date",
    "notes",
]

# Column mappings for the Partners sheet
PARTNER_COLUMNS = [
    "id",
    "owner_id",
    "name",
    "email",
    "company",
    "status",
]

# Column mappings for the Withdrawals sheet
WITHDRAWAL_COLUMNS = [
    "id",
    "owner_id",
    "amount",
    "currency",
    "method",
    "account",
    "project_ids_json",
    "fee",
    "fee_currency",
    "status",
    "request_date",
]


def _safe_get(row: list, index: int, default: str = "") -> str:
    """Read a cell, treating missing columns and blanks as the default."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _optional_date(value: str) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _iso(value: Optional[date]) -> str:
    return value.isoformat() if value else ""


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise BackendConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise BackendConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise BackendConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get a worksheet, creating it with a header row if missing."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_projects_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.projects_sheet_name, PROJECT_COLUMNS)

    def get_expenses_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.expenses_sheet_name, EXPENSE_COLUMNS)

    def get_partners_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.partners_sheet_name, PARTNER_COLUMNS)

    def get_withdrawals_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.withdrawals_sheet_name, WITHDRAWAL_COLUMNS
        )


# =============================================================================
# ROW CODECS
# =============================================================================

def project_to_row(project: Project) -> list:
    """Convert a Project to a spreadsheet row."""
    return [
        project.id,
        project.owner_id,
        project.title,
        project.platform_name,
        project.status.value,
        _iso(project.start_date),
        str(project.price),
        project.currency.value,
        str(project.fee_percent),
        "true" if project.charity_enabled else "false",
        json.dumps([p.model_dump(mode="json") for p in project.partners]),
        json.dumps(project.aggregate.model_dump(mode="json")) if project.aggregate else "",
        project.created_at.isoformat(),
        project.updated_at.isoformat(),
    ]


def row_to_project(row: list) -> Project:
    """Convert a spreadsheet row to a Project."""
    partners_json = _safe_get(row, 10)
    aggregate_json = _safe_get(row, 11)

    return Project(
        id=_safe_get(row, 0),
        owner_id=_safe_get(row, 1),
        title=_safe_get(row, 2),
        platform_name=_safe_get(row, 3),
        status=ProjectStatus(_safe_get(row, 4, ProjectStatus.ACTIVE.value)),
        start_date=_optional_date(_safe_get(row, 5)),
        price=Decimal(_safe_get(row, 6, "0")),
        currency=_safe_get(row, 7),
        fee_percent=Decimal(_safe_get(row, 8, "0")),
        charity_enabled=_safe_get(row, 9).lower() == "true",
        partners=[
            ProjectPartner(**item) for item in json.loads(partners_json)
        ] if partners_json else [],
        aggregate=ProjectAggregate(**json.loads(aggregate_json)) if aggregate_json else None,
        created_at=datetime.fromisoformat(_safe_get(row, 12)) if _safe_get(row, 12) else datetime.utcnow(),
        updated_at=datetime.fromisoformat(_safe_get(row, 13)) if _safe_get(row, 13) else datetime.utcnow(),
    )


def expense_to_row(expense: Expense) -> list:
    """Convert an Expense to a spreadsheet row."""
    return [
        expense.id,
        expense.owner_id,
        expense.name,
        str(expense.amount),
        expense.currency.value,
        expense.cadence.value,
        expense.status.value,
        json.dumps(expense.project_ids),
        expense.category,
        _iso(expense.payment_date),
        expense.notes or "",
    ]


def row_to_expense(row: list) -> Expense:
    """Convert a spreadsheet row to an Expense."""
    project_ids_json = _safe_get(row, 7)
    return Expense(
        id=_safe_get(row, 0),
        owner_id=_safe_get(row, 1),
        name=_safe_get(row, 2),
        amount=Decimal(_safe_get(row, 3, "0")),
        currency=_safe_get(row, 4),
        cadence=ExpenseCadence(_safe_get(row, 5, ExpenseCadence.ONE_TIME.value)),
        status=ExpenseStatus(_safe_get(row, 6, ExpenseStatus.ACTIVE.value)),
        project_ids=json.loads(project_ids_json) if project_ids_json else [],
        category=_safe_get(row, 8, "Other"),
        payment_date=_optional_date(_safe_get(row, 9)),
        notes=_safe_get(row, 10) or None,
    )


def partner_to_row(partner: Partner) -> list:
    """Convert a Partner to a spreadsheet row."""
    return [
        partner.id,
        partner.owner_id,
        partner.name,
        partner.email or "",
        partner.company or "",
        partner.status.value,
    ]


def row_to_partner(row: list) -> Partner:
    """Convert a spreadsheet row to a Partner."""
    return Partner(
        id=_safe_get(row, 0),
        owner_id=_safe_get(row, 1),
        name=_safe_get(row, 2),
        email=_safe_get(row, 3) or None,
        company=_safe_get(row, 4) or None,
        status=PartnerStatus(_safe_get(row, 5, PartnerStatus.ACTIVE.value)),
    )


def withdrawal_to_row(withdrawal: Withdrawal) -> list:
    """Convert a Withdrawal to a spreadsheet row."""
    return [
        withdrawal.id,
        withdrawal.owner_id,
        str(withdrawal.amount),
        withdrawal.currency.value,
        withdrawal.method,
        withdrawal.account,
        json.dumps(withdrawal.project_ids),
        str(withdrawal.fee) if withdrawal.fee is not None else "",
        withdrawal.fee_currency.value if withdrawal.fee_currency else "",
        withdrawal.status.value,
        _iso(withdrawal.request_date),
    ]


def row_to_withdrawal(row: list) -> Withdrawal:
    """Convert a spreadsheet row to a Withdrawal."""
    project_ids_json = _safe_get(row, 6)
    return Withdrawal(
        id=_safe_get(row, 0),
        owner_id=_safe_get(row, 1),
        amount=Decimal(_safe_get(row, 2, "0")),
        currency=_safe_get(row, 3),
        method=_safe_get(row, 4),
        account=_safe_get(row, 5),
        project_ids=json.loads(project_ids_json) if project_ids_json else [],
        fee=Decimal(_safe_get(row, 7)) if _safe_get(row, 7) else None,
        fee_currency=_safe_get(row, 8) or None,
        status=WithdrawalStatus(_safe_get(row, 9, WithdrawalStatus.PENDING.value)),
        request_date=_optional_date(_safe_get(row, 10)),
    )


# =============================================================================
# STORAGE
# =============================================================================

class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    Each record is one row keyed by the id in column A. Saving replaces
    the whole row, or appends one if the id is new.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    # ------------------------------------------------------------------
    # Row helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _find_row(sheet: gspread.Worksheet, record_id: str) -> Optional[tuple[int, list]]:
        """Locate a record by id. Returns (1-based row index, row)."""
        all_rows = sheet.get_all_values()
        for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is the header
            if row and row[0] == record_id:
                return idx, row
        return None

    @staticmethod
    def _parse_rows(
        sheet: gspread.Worksheet,
        decode: Callable[[list], RecordT],
        owner_id: str,
    ) -> list[RecordT]:
        """Decode every row belonging to an owner, skipping malformed rows."""
        records = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            if _safe_get(row, 1) != owner_id:
                continue
            try:
                records.append(decode(row))
            except Exception as e:
                logger.warning(
                    "malformed_row_skipped",
                    sheet=sheet.title,
                    record_id=row[0],
                    error=str(e),
                )
        return records

    def _upsert(self, sheet: gspread.Worksheet, record_id: str, row: list) -> None:
        found = self._find_row(sheet, record_id)
        if found is None:
            sheet.append_row(row, value_input_option="RAW")
            return
        idx, _ = found
        sheet.update(
            range_name=f"A{idx}",
            values=[row],
            value_input_option="RAW",
        )

    def _delete(self, sheet: gspread.Worksheet, record_id: str) -> bool:
        found = self._find_row(sheet, record_id)
        if found is None:
            return False
        sheet.delete_rows(found[0])
        return True

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    async def get_project(self, project_id: str) -> Optional[Project]:
        """Retrieve a project by its ID."""
        try:
            found = self._find_row(self._client.get_projects_sheet(), project_id)
            return row_to_project(found[1]) if found else None
        except Exception as e:
            raise StorageError(f"Failed to get project: {e}")

    async def list_projects(self, owner_id: str) -> list[Project]:
        """List an owner's projects."""
        try:
            return self._parse_rows(
                self._client.get_projects_sheet(), row_to_project, owner_id
            )
        except Exception as e:
            raise StorageError(f"Failed to list projects: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_project(self, project: Project) -> bool:
        """Insert or replace a project row, aggregate included."""
        try:
            self._upsert(
                self._client.get_projects_sheet(),
                project.id,
                project_to_row(project),
            )
            return True
        except Exception as e:
            raise StorageError(f"Failed to save project: {e}")

    async def delete_project(self, project_id: str) -> bool:
        """Delete a project by ID."""
        try:
            return self._delete(self._client.get_projects_sheet(), project_id)
        except Exception as e:
            raise StorageError(f"Failed to delete project: {e}")

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    async def get_expense(self, expense_id: str) -> Optional[Expense]:
        """Retrieve an expense by its ID."""
        try:
            found = self._find_row(self._client.get_expenses_sheet(), expense_id)
            return row_to_expense(found[1]) if found else None
        except Exception as e:
            raise StorageError(f"Failed to get expense: {e}")

    async def list_expenses(self, owner_id: str) -> list[Expense]:
        """List an owner's expenses."""
        try:
            return self._parse_rows(
                self._client.get_expenses_sheet(), row_to_expense, owner_id
            )
        except Exception as e:
            raise StorageError(f"Failed to list expenses: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_expense(self, expense: Expense) -> bool:
        """Insert or replace an expense row."""
        try:
            self._upsert(
                self._client.get_expenses_sheet(),
                expense.id,
                expense_to_row(expense),
            )
            return True
        except Exception as e:
            raise StorageError(f"Failed to save expense: {e}")

    async def delete_expense(self, expense_id: str) -> bool:
        """Delete an expense by ID."""
        try:
            return self._delete(self._client.get_expenses_sheet(), expense_id)
        except Exception as e:
            raise StorageError(f"Failed to delete expense: {e}")

    # ------------------------------------------------------------------
    # Partners
    # ------------------------------------------------------------------

    async def get_partner(self, partner_id: str) -> Optional[Partner]:
        """Retrieve a partner by its ID."""
        try:
            found = self._find_row(self._client.get_partners_sheet(), partner_id)
            return row_to_partner(found[1]) if found else None
        except Exception as e:
            raise StorageError(f"Failed to get partner: {e}")

    async def list_partners(self, owner_id: str) -> list[Partner]:
        """List an owner's partners."""
        try:
            return self._parse_rows(
                self._client.get_partners_sheet(), row_to_partner, owner_id
            )
        except Exception as e:
            raise StorageError(f"Failed to list partners: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_partner(self, partner: Partner) -> bool:
        """Insert or replace a partner row."""
        try:
            self._upsert(
                self._client.get_partners_sheet(),
                partner.id,
                partner_to_row(partner),
            )
            return True
        except Exception as e:
            raise StorageError(f"Failed to save partner: {e}")

    # ------------------------------------------------------------------
    # Withdrawals
    # ------------------------------------------------------------------

    async def get_withdrawal(self, withdrawal_id: str) -> Optional[Withdrawal]:
        """Retrieve a withdrawal by its ID."""
        try:
            found = self._find_row(self._client.get_withdrawals_sheet(), withdrawal_id)
            return row_to_withdrawal(found[1]) if found else None
        except Exception as e:
            raise StorageError(f"Failed to get withdrawal: {e}")

    async def list_withdrawals(self, owner_id: str) -> list[Withdrawal]:
        """List an owner's withdrawals."""
        try:
            return self._parse_rows(
                self._client.get_withdrawals_sheet(), row_to_withdrawal, owner_id
            )
        except Exception as e:
            raise StorageError(f"Failed to list withdrawals: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_withdrawal(self, withdrawal: Withdrawal) -> bool:
        """Insert or replace a withdrawal row."""
        try:
            self._upsert(
                self._client.get_withdrawals_sheet(),
                withdrawal.id,
                withdrawal_to_row(withdrawal),
            )
            return True
        except Exception as e:
            raise StorageError(f"Failed to save withdrawal: {e}")

    async def delete_withdrawal(self, withdrawal_id: str) -> bool:
        """Delete a withdrawal by ID."""
        try:
            return self._delete(self._client.get_withdrawals_sheet(), withdrawal_id)
        except Exception as e:
            raise StorageError(f"Failed to delete withdrawal: {e}")
