"""
storage.py - persistence backends for the tracker state

The tracker state is a plain dict:
    {"expenses": [...], "credits": [...], "wishlist": [...], "rooms": [...]}
where each list holds the to_dict() form of the model objects.

Two backends:
 - GoogleSheetsBackend: one worksheet per list, used when GOOGLE_SHEET_ID and
   credentials are configured
 - LocalJsonStore: a JSON file written atomically (temp file + move)
"""

import ast
import json
import logging
import os
import shutil
import tempfile
from typing import Any, Dict, List, Tuple

# Optional Google Sheets backend imports are lazy/optional
try:
    import gspread
    from google.oauth2.service_account import Credentials
except Exception:
    gspread = None
    Credentials = None

logger = logging.getLogger(__name__)

DEFAULT_DATA_FILE = os.path.join(os.path.dirname(__file__), "..", "data", "tallybook_data.json")

STATE_KEYS = ("expenses", "credits", "wishlist", "rooms")


def empty_state() -> Dict[str, list]:
    return {key: [] for key in STATE_KEYS}


def default_data_file() -> str:
    return (os.getenv("TALLYBOOK_DATA_FILE") or "").strip() or DEFAULT_DATA_FILE


class LocalJsonStore:
    """State persisted as a single JSON document on disk."""

    def __init__(self, path: str = None):
        self.path = os.path.abspath(path or default_data_file())

    def load_state(self) -> Dict[str, list]:
        """Missing file => empty state. Unknown keys in the file are ignored."""
        if not os.path.exists(self.path):
            return empty_state()
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        state = empty_state()
        for key in STATE_KEYS:
            state[key] = list(data.get(key, []) or [])
        return state

    def save_state(self, data: Dict[str, Any]) -> None:
        """
        Write state atomically: dump to a temp file in the same directory,
        then move it over the target.
        """
        dirn = os.path.dirname(self.path)
        os.makedirs(dirn, exist_ok=True)
        logger.info("Saving data to %s (%s)", self.path,
                    ", ".join(f"{k}={len(data.get(k, []))}" for k in STATE_KEYS))
        fd, tmp_path = tempfile.mkstemp(prefix="tmp_tallybook_", dir=dirn, text=True)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            shutil.move(tmp_path, self.path)
        except Exception:
            logger.exception("Failed to save data file")
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


class GoogleSheetsBackend:
    """
    Google Sheets persistence backend.

    Data layout: one worksheet per state list, first row holds the headers.
    Columns ending in "_json" hold JSON-encoded values (participant lists,
    room members and expenses).
    """

    SHEETS = {
        "expenses": ["id", "title", "amount", "category", "date", "notes"],
        "credits": ["id", "title", "amount", "source", "date", "notes"],
        "wishlist": [
            "id", "title", "price", "image_url", "notes", "priority",
            "is_purchased", "date_added", "target_date", "category",
        ],
        "rooms": ["id", "name", "created_date", "members_json", "expenses_json"],
    }
    FLOAT_FIELDS = {"amount", "price"}
    # Google Sheets rejects cells longer than this
    CELL_LIMIT = 50000
    SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

    def __init__(self):
        self.available = False
        self.reason = ""
        self.sheet_id = (os.getenv("GOOGLE_SHEET_ID") or "").strip()
        self._spreadsheet = None
        self._worksheets: Dict[str, Any] = {}

        if not self.sheet_id:
            self.reason = "GOOGLE_SHEET_ID is not set"
            return
        if gspread is None or Credentials is None:
            self.reason = "Google Sheets dependencies are unavailable"
            return

        try:
            creds = self._build_credentials()
            client = gspread.authorize(creds)
            self._spreadsheet = client.open_by_key(self.sheet_id)
            for title, headers in self.SHEETS.items():
                self._worksheets[title] = self._get_or_create_worksheet(
                    title, rows=1000, cols=max(12, len(headers))
                )
            self._ensure_headers()
            self.available = True
        except Exception as exc:
            self.available = False
            self.reason = f"Google Sheets init failed ({exc.__class__.__name__})"
            logger.warning("Google Sheets backend unavailable: %s", self.reason)

    def _build_credentials(self):
        service_account_json = (os.getenv("GOOGLE_SERVICE_ACCOUNT_JSON") or "").strip()
        service_account_file = (os.getenv("GOOGLE_SERVICE_ACCOUNT_FILE") or "").strip()

        if service_account_json:
            try:
                info = json.loads(service_account_json)
            except ValueError:
                # tolerate Python-dict style strings often pasted into env vars
                info = ast.literal_eval(service_account_json)
            if not isinstance(info, dict):
                raise ValueError("GOOGLE_SERVICE_ACCOUNT_JSON must decode to an object")
            return Credentials.from_service_account_info(info, scopes=self.SCOPES)

        if service_account_file:
            return Credentials.from_service_account_file(service_account_file, scopes=self.SCOPES)

        import google.auth
        creds, _ = google.auth.default(scopes=self.SCOPES)
        return creds

    def _get_or_create_worksheet(self, title: str, rows: int, cols: int):
        try:
            return self._spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            return self._spreadsheet.add_worksheet(title=title, rows=rows, cols=cols)

    @staticmethod
    def _ensure_sheet_size(ws, min_rows: int, min_cols: int):
        new_rows = max(ws.row_count, min_rows)
        new_cols = max(ws.col_count, min_cols)
        if new_rows != ws.row_count or new_cols != ws.col_count:
            ws.resize(rows=new_rows, cols=new_cols)

    def _ensure_headers(self):
        for title, headers in self.SHEETS.items():
            ws = self._worksheets[title]
            first = ws.row_values(1) or []
            if [x.strip() for x in first] != headers:
                self._ensure_sheet_size(ws, 2, len(headers))
                ws.update(range_name="A1", values=[headers], value_input_option="RAW")

    @staticmethod
    def _to_float(value: Any, default: float = 0.0) -> float:
        try:
            return float(str(value).strip())
        except ValueError:
            return default

    @staticmethod
    def _parse_json_or_literal(value: Any):
        if isinstance(value, (list, dict)):
            return value
        text = str(value or "").strip()
        if not text:
            return None
        for parser in (json.loads, ast.literal_eval):
            try:
                return parser(text)
            except (ValueError, SyntaxError):
                continue
        return None

    @classmethod
    def record_to_dict(cls, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Convert one sheet row (header -> cell text) back into a model dict.
        "_json" columns are decoded and renamed without the suffix.
        """
        out: Dict[str, Any] = {}
        for header, raw in record.items():
            if header.endswith("_json"):
                parsed = cls._parse_json_or_literal(raw)
                out[header[: -len("_json")]] = parsed if isinstance(parsed, list) else []
            elif header in cls.FLOAT_FIELDS:
                out[header] = round(cls._to_float(raw, 0.0), 2)
            elif header == "is_purchased":
                out[header] = str(raw).strip().lower() in ("true", "1", "yes")
            else:
                out[header] = str(raw if raw is not None else "").strip()
        return out

    @classmethod
    def dict_to_row(cls, headers: List[str], d: Dict[str, Any]) -> List[str]:
        row = []
        for header in headers:
            if header.endswith("_json"):
                row.append(json.dumps(d.get(header[: -len("_json")], []) or [], ensure_ascii=False))
            elif header in cls.FLOAT_FIELDS:
                row.append(f"{round(cls._to_float(d.get(header, 0.0), 0.0), 2):.2f}")
            else:
                value = d.get(header, "")
                row.append("" if value is None else str(value))
        return row

    @classmethod
    def oversized_cells(cls, headers: List[str], row: List[str]) -> List[Tuple[str, int]]:
        """(header, length) for every cell of a row over CELL_LIMIT."""
        return [(h, len(v)) for h, v in zip(headers, row) if len(v) > cls.CELL_LIMIT]

    def save_state(self, data: Dict[str, Any]) -> bool:
        if not self.available:
            return False

        # encode and check every row before clearing any worksheet
        sheet_rows: Dict[str, List[List[str]]] = {}
        for title, headers in self.SHEETS.items():
            records = data.get(title, []) or []
            rows = [self.dict_to_row(headers, d) for d in records]
            for d, row in zip(records, rows):
                for header, size in self.oversized_cells(headers, row):
                    logger.warning(
                        "Cannot save %s id=%s to Google Sheets: %s is %d characters (limit %d)",
                        title, d.get("id"), header, size, self.CELL_LIMIT,
                    )
                    return False
            sheet_rows[title] = [headers] + rows

        try:
            self._ensure_headers()
            for title, headers in self.SHEETS.items():
                ws = self._worksheets[title]
                rows = sheet_rows[title]
                self._ensure_sheet_size(ws, len(rows) + 10, len(headers))
                # RAW keeps user text from being interpreted as formulas
                ws.clear()
                ws.update(range_name="A1", values=rows, value_input_option="RAW")
            return True
        except Exception:
            logger.exception("Failed to save tracker state to Google Sheets")
            return False

    def load_state(self) -> Dict[str, list]:
        if not self.available:
            return {}

        try:
            self._ensure_headers()
            state = empty_state()
            for title in self.SHEETS:
                values = self._worksheets[title].get_all_values() or []
                if not values:
                    continue
                headers = [str(h).strip().lower() for h in values[0]]
                for row in values[1:]:
                    if not any(str(c).strip() for c in row):
                        continue
                    record = {
                        header: (row[idx] if idx < len(row) else "")
                        for idx, header in enumerate(headers)
                        if header
                    }
                    state[title].append(self.record_to_dict(record))
            return state
        except Exception:
            logger.exception("Failed to load tracker state from Google Sheets")
            return {}
