"""Upload/download helpers shared by the spreadsheet routes."""
from io import BytesIO

from flask import request, send_file

from ..services.spreadsheet_service import XLSX_MIME_TYPE, SpreadsheetError


def read_upload() -> bytes:
    """Bytes of the multipart field "file". Raises SpreadsheetError when absent or empty."""
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        raise SpreadsheetError("No file uploaded (multipart field 'file')")
    data = upload.read()
    if not data:
        raise SpreadsheetError("The uploaded file is empty")
    return data


def xlsx_response(data: bytes, filename: str):
    return send_file(
        BytesIO(data),
        mimetype=XLSX_MIME_TYPE,
        as_attachment=True,
        download_name=filename,
    )
